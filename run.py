import uvicorn
from captioner.config import settings

def main():
    try:
        uvicorn.run(
            "captioner.main:app",
            host=settings.HOST,
            port=settings.PORT,
            reload=False
        )
    except (KeyboardInterrupt, SystemExit):
        pass

if __name__ == "__main__":
    main()
