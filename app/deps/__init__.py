# FastAPI dependencies: API key check and the master password authorizer.
