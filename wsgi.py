from timecapsule import create_app

app = create_app()
