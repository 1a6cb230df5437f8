"""
modcsv.api - status API for running simulations

Needs Flask, installed with the ``api`` extra.
"""

from .rest import api_available, create_rest_app, start_api_thread

__all__ = [
    'api_available',
    'create_rest_app',
    'start_api_thread'
]
