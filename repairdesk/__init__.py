import os
import logging
from flask import Flask, jsonify, redirect, request, url_for
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_login import LoginManager, login_required
from dotenv import load_dotenv
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from .config import DevConfig, ProdConfig, TestConfig

# Initialize extensions
db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()

CONFIGS = {
    'development': DevConfig,
    'production': ProdConfig,
    'testing': TestConfig,
}


def _wants_json() -> bool:
    return request.path.startswith('/api/')


def create_app(config_name: str | None = None) -> Flask:
    """Application factory with environment based configuration."""
    load_dotenv()

    app = Flask(__name__, instance_relative_config=True)
    os.makedirs(app.instance_path, exist_ok=True)

    # Pick configuration
    env = config_name or os.getenv('ENV') or os.getenv('FLASK_ENV') or 'production'
    app.config.from_object(CONFIGS.get(env, ProdConfig))

    # Initialise logging
    logging.basicConfig(level=logging.DEBUG if app.debug else logging.INFO)

    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)

    # Ensure models loaded so tables can be created
    from repairdesk import models  # noqa
    with app.app_context():
        db.create_all()

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(models.User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        if _wants_json():
            return jsonify(error='Unauthorized'), 401
        return redirect(url_for('auth.login_page', next=request.path))

    @app.route('/')
    @login_required
    def index():
        """Dashboard counters."""
        counts = dict(
            db.session.query(models.JobCard.status, func.count(models.JobCard.id))
            .group_by(models.JobCard.status)
            .all()
        )
        return jsonify(
            jobCards={s: counts.get(s, 0) for s in models.JOB_CARD_STATUSES},
            totalJobCards=sum(counts.values()),
            customers=models.Customer.query.count(),
        )

    from repairdesk.errors import RepairDeskError

    @app.errorhandler(RepairDeskError)
    def domain_error(e):
        return jsonify(error=str(e)), e.status_code

    @app.errorhandler(HTTPException)
    def http_error(e):
        if _wants_json():
            return jsonify(error=e.description), e.code
        return e

    @app.errorhandler(SQLAlchemyError)
    def database_error(e):
        db.session.rollback()
        app.logger.exception('Database error on %s %s', request.method, request.path)
        return jsonify(error='Database error', details=str(e)), 500

    from repairdesk.auth.routes import bp as auth_bp
    from repairdesk.job_cards.routes import bp as job_cards_bp
    from repairdesk.customers.routes import bp as customers_bp
    from repairdesk.cli import customers_cli, seed_command, users_cli

    app.register_blueprint(auth_bp)
    app.register_blueprint(job_cards_bp, url_prefix='/api/job-cards')
    app.register_blueprint(customers_bp, url_prefix='/api/customers')
    app.cli.add_command(users_cli)
    app.cli.add_command(customers_cli)
    app.cli.add_command(seed_command)

    return app
