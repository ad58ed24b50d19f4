import asyncio
import logging
from config import Config
from database.db import db

async def main():
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    Config.validate()

    try:
        await db.connect()
        logging.info("Database connection established")

        await db.create_tables()
    except Exception as e:
        logging.error(f"Error during schema setup: {e}")
        raise
    finally:
        await db.close()

if __name__ == '__main__':
    try:
        asyncio.run(main())
    except (KeyboardInterrupt, SystemExit):
        logging.info("Stopped!")
    except Exception as e:
        logging.error(f"Error: {e}")
