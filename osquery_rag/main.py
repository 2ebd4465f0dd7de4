"""
Flask application entry point for the osquery SQL generator.

This module exposes a minimal REST API with two endpoints:

  - ``GET /healthcheck`` simply returns a 200 status with a JSON payload
    indicating that the service is alive.  It can be used by container
    orchestrators or load balancers for readiness probes.
  - ``POST /query`` accepts a JSON body with a ``query`` field and
    returns the four osquery SQL statements (macOS, Windows, Linux,
    ChromeOS) answering it.  A missing or blank ``query`` yields a 400;
    any failure while retrieving, generating or validating yields a 500
    with a generic message, the detail going to the log only.

The engine is built once by :func:`main` before the server binds and is
handed to :func:`create_app`, so loading the corpus, computing the
embeddings and building the FAISS index happen exactly once per process.
"""

import logging
from typing import Iterable, Union

from dotenv import load_dotenv
from flask import Flask, jsonify, request
from flask_cors import CORS
from pydantic import ValidationError
from werkzeug.exceptions import HTTPException

from osquery_rag.config import Settings
from osquery_rag.errors import ConfigurationError, InputValidationError, OsqueryRAGError
from osquery_rag.models import ErrorResponse, QueryRequest
from osquery_rag.rag_engine import RAGEngine

logger = logging.getLogger(__name__)

QUERY_NOT_PROVIDED = "Query not provided"
PROCESSING_FAILED = "An error occurred while processing the query."


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level, format="%(levelname)s:%(name)s: %(message)s")


def _error(message: str, status: int):
    return jsonify(ErrorResponse(error=message).model_dump()), status


def create_app(engine: RAGEngine, cors_origins: Union[str, Iterable[str]] = "*") -> Flask:
    """Build the Flask application around an initialized engine."""
    app = Flask(__name__)
    app.json.sort_keys = False
    if not isinstance(cors_origins, str):
        cors_origins = list(cors_origins)
    CORS(app, origins=cors_origins)

    @app.get("/healthcheck")
    def healthcheck():
        """Simple healthcheck endpoint returning status 200."""
        return jsonify({"status": "ok"}), 200

    @app.post("/query")
    def query():
        """Translate a question into osquery SQL for each platform.

        Expects a JSON payload that conforms to the ``QueryRequest``
        schema and returns a JSON object matching ``SQLBundle``.
        """
        body = request.get_json(silent=True)
        if not isinstance(body, dict):
            body = {}
        try:
            payload = QueryRequest.model_validate(body)
        except ValidationError as exc:
            raise InputValidationError(QUERY_NOT_PROVIDED) from exc

        try:
            bundle = engine.answer_question(payload.query)
        except OsqueryRAGError:
            logger.exception("Failed to answer query %r", payload.query)
            return _error(PROCESSING_FAILED, 500)
        return jsonify(bundle.model_dump()), 200

    @app.errorhandler(InputValidationError)
    def handle_bad_input(exc):
        return _error(str(exc), 400)

    @app.errorhandler(Exception)
    def handle_unexpected(exc):
        if isinstance(exc, HTTPException):
            return exc
        logger.exception("Unhandled error while serving %s %s", request.method, request.path)
        return _error(PROCESSING_FAILED, 500)

    return app


def main() -> None:
    """Load configuration, build the index and serve until interrupted.

    A missing API key or an unusable corpus stops the process before the
    server binds.
    """
    load_dotenv()
    try:
        settings = Settings.from_env()
    except ConfigurationError as exc:
        configure_logging()
        logger.critical("Invalid configuration: %s", exc)
        raise SystemExit(1) from exc
    configure_logging(settings.log_level)

    try:
        engine = RAGEngine.from_settings(settings)
    except OsqueryRAGError as exc:
        logger.critical("Could not initialize the query engine: %s", exc)
        raise SystemExit(1) from exc

    app = create_app(engine, settings.cors_origins)
    logger.info("Server running on port %d", settings.port)
    try:
        # For local use.  In production, point a WSGI server at create_app().
        app.run(host=settings.host, port=settings.port, threaded=True)
    finally:
        engine.close()


if __name__ == "__main__":
    main()
