from seedbank.api.main import app

if __name__ == "__main__":
    import logging
    import os
    import uvicorn
    from seedbank.core.config import get_config

    logging.basicConfig(
        level=getattr(logging, get_config().log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    host = os.getenv("SEEDBANK_HOST", "0.0.0.0")
    port = int(os.getenv("SEEDBANK_PORT", "8001"))
    uvicorn.run(app, host=host, port=port)
