"""
alerts — New-and-nearby hazard detection and notification dispatch.

Sub-modules:
    channels/        — Delivery backends (push)
    change_detector  — Diff new hazards against the persisted snapshot
    dispatcher       — Deliver detected events through a channel
    models           — Notification events and delivery records
"""
