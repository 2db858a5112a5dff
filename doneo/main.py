from __future__ import annotations

import logging
import sys

from doneo.infra.db import engine, init_db
from doneo.infra.logging import setup_logging
from doneo.services.project_service import ProjectService
from doneo.viewmodels.project_chat_viewmodel import ProjectChatViewModel

logger = logging.getLogger(__name__)


def open_project_chat(service: ProjectService, project_id: int, user_id: int) -> ProjectChatViewModel:
    return ProjectChatViewModel(service, project_id, user_id)


def main() -> int:
    setup_logging()
    try:
        init_db()
    except Exception as exc:  # noqa: BLE001
        logger.critical("DB error: %s", exc)
        return 1

    logger.info("DONEO core ready on %s", engine.url.render_as_string(hide_password=True))
    return 0


if __name__ == "__main__":
    sys.exit(main())
