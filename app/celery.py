from celery import Celery

# Importing the logging module installs the loguru sinks and std-logging intercepts
import app.utils.logging  # noqa: F401

# Create Celery app
celery = Celery("docurequest")

# Load configuration from app.config.celeryconfig module
celery.config_from_object("app.config.celeryconfig")
