from deployer.server import app  # re-use the FastAPI instance

if __name__ == "__main__":
    import uvicorn
    from deployer.settings import settings
    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
