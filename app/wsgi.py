from app.traveldocs import create_app

app = create_app()
