# Run from project root: uvicorn app.main:app --reload   (or: python -m app.main [api|chat])

import argparse
import logging

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError

from app.api.handlers import skill_error_handler, validation_error_handler
from app.api.routes import router
from app.core.config import AGENT_NAME, GATE_SESSION_CACHE_SIZE, PORT, SKILL_GATE_POLICY
from app.core.errors import SkillError
from app.core.skill_gate import SessionGateCache

logging.basicConfig(level=logging.INFO)

logger = logging.getLogger(__name__)


def create_app(gates: SessionGateCache | None = None) -> FastAPI:
    """Build the API. Each app owns its gate cache; tests pass their own."""
    api = FastAPI(title=f"{AGENT_NAME} API")
    if gates is None:
        gates = SessionGateCache(maxsize=GATE_SESSION_CACHE_SIZE, policy=SKILL_GATE_POLICY)
    api.state.skill_gates = gates
    api.add_exception_handler(SkillError, skill_error_handler)
    api.add_exception_handler(RequestValidationError, validation_error_handler)
    api.include_router(router)
    return api


app = create_app()


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description=f"{AGENT_NAME}: document indexing and lookup agent.")
    parser.add_argument("mode", nargs="?", choices=("api", "chat"), default="api", help="api (default) or chat")
    parser.add_argument("--port", type=int, default=PORT, help="HTTP port for api mode")
    args = parser.parse_args(argv)

    if args.mode == "chat":
        from app.chat import run_chat

        run_chat()
        return

    import uvicorn

    logger.info("Starting %s API server on port %d (gate policy=%s)", AGENT_NAME, args.port, SKILL_GATE_POLICY)
    uvicorn.run(app, host="0.0.0.0", port=args.port)


if __name__ == "__main__":
    main()
