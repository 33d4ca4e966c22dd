"""
SLA Module
==========

SLA tracking and escalation for helpdesk tickets: business-hours clocks,
pause handling, metrics, warning sweeps and escalation.
"""
