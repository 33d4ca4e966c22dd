"""
Helpdesk SLA Engine
===================

SLA tracking and escalation for a multi-tenant support-ticketing platform.
"""

__version__ = "1.0.0"
