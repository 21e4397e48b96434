from ledgerbook import create_app

app = create_app()
