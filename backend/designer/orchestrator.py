import logging
from dataclasses import dataclass
from typing import Optional

from backend.ai.generation import ImageGenerator, TextGenerator
from backend.ai.prompts import build_designer_messages, build_image_prompt
from backend.designer.models import DesignSessionOut, FormData, MessageOut, Sender
from backend.designer.session_store import DesignSessionStore
from backend.errors import NotFound
from backend.services.storage import LocalObjectStorage, generated_design_path

logger = logging.getLogger(__name__)

APOLOGY_ON_ERROR = "I apologize, but I encountered an error while generating a response. Please try again."
APOLOGY_ON_EMPTY = "I apologize, but I couldn't generate a response. Please try again."


@dataclass
class TurnResult:
    user_message: MessageOut
    assistant_message: MessageOut

    @property
    def message(self) -> str:
        return self.assistant_message.message

    @property
    def image_url(self) -> Optional[str]:
        return self.assistant_message.image_url


class Orchestrator:
    """Runs one turn of a design conversation.

    Steps run strictly in order and each persisted step commits on its own:
    the history is append-only, so a failure late in the turn still leaves
    the user's message stored. Generation failures never abort the turn.
    """

    def __init__(
        self,
        session_store: DesignSessionStore,
        text_generator: TextGenerator,
        image_generator: ImageGenerator,
        storage: LocalObjectStorage,
    ):
        self.session_store = session_store
        self.text_generator = text_generator
        self.image_generator = image_generator
        self.storage = storage

    async def handle_message(
        self,
        session_id: str,
        user_id: str,
        content: str,
        reference_image_url: Optional[str] = None,
        is_initial: bool = False,
        form_data: Optional[FormData] = None,
    ) -> TurnResult:
        """Persist the user's message, generate a reply and image, persist the reply."""
        session = await self.session_store.get_session(session_id, user_id)
        if not session:
            raise NotFound()

        user_msg = await self.session_store.append_message(
            session.id, Sender.USER, content, reference_image_url
        )

        reply = await self._generate_reply(session, is_initial, form_data)
        image_url = await self._generate_image(session, user_id)

        assistant_msg = await self.session_store.append_message(
            session.id, Sender.ASSISTANT, reply, image_url
        )
        await self.session_store.touch_session(session.id, user_id)

        return TurnResult(user_message=user_msg, assistant_message=assistant_msg)

    async def _generate_reply(
        self, session: DesignSessionOut, is_initial: bool, form_data: Optional[FormData]
    ) -> str:
        try:
            history = await self.session_store.list_messages(session.id, session.user_id)
            system, messages = build_designer_messages(session, history, is_initial, form_data)
            text = await self.text_generator.generate(system, messages)
        except Exception:
            logger.warning("Text generation failed for session %s", session.id, exc_info=True)
            return APOLOGY_ON_ERROR

        return text.strip() or APOLOGY_ON_EMPTY

    async def _generate_image(self, session: DesignSessionOut, user_id: str) -> Optional[str]:
        """Render the design and store it. Returns None if any step fails."""
        try:
            transient_url = await self.image_generator.generate(build_image_prompt(session))
            data = await self.image_generator.fetch(transient_url)
            return await self.storage.upload(
                generated_design_path(user_id, session.id), data, content_type="image/png"
            )
        except Exception:
            logger.warning("Image generation failed for session %s", session.id, exc_info=True)
            return None
