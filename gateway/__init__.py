"""
Gateway Package
Facade the HTTP layer talks to, plus configuration loading
"""

from .payment_gateway import PaymentGateway
from .settings import load_chain_table, load_gateway_config

__all__ = ['PaymentGateway', 'load_chain_table', 'load_gateway_config']
