"""
Prompt templates and tool definitions for the agent
"""
from .models import InboundEmail


class PromptTemplates:
    """Manages prompt templates for reply generation"""

    SYSTEM_PROMPT = """You are a useful AI Assistance from the project AskEmail
Your task is to help users by answering their emails and executing the tasks their ask you to.
Make sure to always answer in the same language as the user, and to always be very responsive.
If a user asks you to remember something, please call the save_in_memory tool, this will save the user message (not including files) and a text from your choice that should represent what the user asked you to remember.
If a user asks you directly or indirectly something that you think you should remember, please call the get_from_memory tool with the text you are trying to remember, this tool will then give you up to three memories related to the text you sent.
You will always receive an email from the user, this can be a new email just for you, without history, or it can be an email thread, containing multiple emails in them. In the case of you receiving an email thread, the latest user message will be on the top, because emails replies are ordered from the newest to the oldest.
If the received email also contains attachments, you will first receive a list of the attached files with names and descriptions, followed by the content of the files that were included, in the same order as the list.
Attachments are only included up to a total size limit and only for supported file types. If the list says a file was not included, or the user talks about a file you don't see, warn the user about that.
Its required that you always write the response in valid markdown. Please make sure to always respond in valid markdown."""

    SAVE_TOOL = {
        "name": "save_in_memory",
        "description": "Call this function when the user ask you to remember something",
        "input_schema": {
            "type": "object",
            "properties": {
                "text": {"type": "string", "description": "What should be remembered"},
            },
            "required": ["text"],
        },
    }

    RETRIEVE_TOOL = {
        "name": "get_from_memory",
        "description": (
            "Call this function when the user ask you to remember something from the past. "
            "in the text property you should send what you are trying to remember"
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "text": {"type": "string", "description": "What you are trying to remember"},
            },
            "required": ["text"],
        },
    }

    TOOLS = [SAVE_TOOL, RETRIEVE_TOOL]

    @staticmethod
    def build_user_request(email: InboundEmail) -> str:
        """
        Build the request turn describing the inbound email

        This text is also stored with every memory saved while answering it.
        """
        return (
            f"Received new email from user {email.from_name} <{email.from_address}>, "
            f"on date {email.date.isoformat()}.\n"
            f"Email Subject: {email.subject}\n"
            f"Email Body: {email.body}"
        )
