import logging

from flask import Blueprint
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from models import storage

bp = Blueprint("health", __name__)

VERSION = "1.0.0"


@bp.get("/health")
def health():
    """
    Liveness plus a database round trip
    ---
    tags:
      - Health
    responses:
      200:
        description: API and database are up
      503:
        description: Database unreachable
    """
    try:
        storage.get_session().execute(text("SELECT 1"))
    except SQLAlchemyError:
        logging.exception("Health check database ping failed")
        return {"status": "degraded", "database": "unreachable", "version": VERSION}, 503
    return {"status": "ok", "database": "ok", "version": VERSION}, 200
