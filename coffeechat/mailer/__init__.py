"""
Invitation email rendering and delivery.
"""

from .sender import DeliveryReport, EmailSender
from .template import EmailTemplate

__all__ = ["DeliveryReport", "EmailSender", "EmailTemplate"]
