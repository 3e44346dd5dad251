import click
from flask import Flask, jsonify, request
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from config import Config

db = SQLAlchemy()


def create_app(overrides=None):
    app = Flask(__name__)

    # BASIC CONFIG
    app.config.from_mapping(Config().as_dict())
    if overrides:
        app.config.update(overrides)

    if not app.config["JWT_SECRET"]:
        app.logger.warning("JWT_SECRET is not set; login and protected routes will answer 500")

    # Init extensions
    db.init_app(app)

    # Blueprint
    from backend.routes import bp
    app.register_blueprint(bp)

    register_error_handlers(app)
    register_cors(app)
    register_commands(app)

    with app.app_context():
        from backend import models  # noqa: F401  (register tables)
        db.create_all()

    return app


def register_error_handlers(app):
    from backend.errors import ApiError, PersistenceError

    @app.errorhandler(ApiError)
    def handle_api_error(err):
        body = err.to_dict(expose_detail=app.config["EXPOSE_ERROR_DETAILS"])
        return jsonify(body), err.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(err):
        # werkzeug errors (unmatched routes included) keep the JSON error shape
        code = err.name.lower().replace(" ", "_")
        return jsonify({"error": err.description, "code": code}), err.code

    @app.errorhandler(SQLAlchemyError)
    def handle_db_error(err):
        app.logger.error("Persistence failure on %s %s: %s", request.method, request.path, err)
        db.session.rollback()
        wrapped = PersistenceError(detail=str(err))
        body = wrapped.to_dict(expose_detail=app.config["EXPOSE_ERROR_DETAILS"])
        return jsonify(body), wrapped.status_code


def register_cors(app):
    @app.before_request
    def preflight():
        if request.method == "OPTIONS":
            return app.response_class(status=200)

    @app.after_request
    def cors_headers(response):
        response.headers["Access-Control-Allow-Origin"] = "*"
        response.headers["Access-Control-Allow-Headers"] = "Content-Type, Authorization"
        response.headers["Access-Control-Allow-Methods"] = "GET, POST, PUT, PATCH, DELETE, OPTIONS"
        return response


def register_commands(app):
    @app.cli.command("init-db")
    def init_db():
        """Create all tables."""
        db.create_all()
        click.echo("Tables created")

    @app.cli.command("promote-user")
    @click.argument("email")
    def promote_user(email):
        """Grant the premium tier to EMAIL."""
        from backend.accounts import AccountService
        from backend.errors import NotFoundError

        try:
            user = AccountService(db.session).promote(email)
        except NotFoundError as err:
            raise click.ClickException(err.message)
        click.echo(f"{user.email} is now {user.tier}")
