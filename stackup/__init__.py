"""stackup — provision a containerized web-app development environment."""

__version__ = "0.1.0"
