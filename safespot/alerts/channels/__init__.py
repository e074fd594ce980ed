"""
Notification delivery channels.

Each channel exposes: async send(title, body, priority) -> DeliveryAttempt
"""
