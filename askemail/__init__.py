"""
AskEmail - answers inbound emails with a Claude agent

This service handles the whole email-to-agent pipeline:
- Parses the raw inbound message
- Enforces a per-sender daily reply limit
- Admits attachments under a type and size budget
- Runs a tool-calling agent that can save and recall per-sender memories
- Sends the reply via SMTP or the Mailgun fallback
"""

__version__ = "0.1.0"
