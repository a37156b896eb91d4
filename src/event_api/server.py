"""HTTP server 執行入口。"""

from __future__ import annotations

import logging

import uvicorn
from dotenv import load_dotenv

from event_api.config import EventApiConfig
from event_api.main import create_app

logger = logging.getLogger(__name__)


def main() -> None:
    """以 uvicorn 啟動 Event API。"""
    load_dotenv()
    config = EventApiConfig()

    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )

    logger.info('啟動 HTTP server', extra={'host': config.host, 'port': config.port})
    uvicorn.run(
        create_app(config),
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower(),
    )


if __name__ == '__main__':
    main()
