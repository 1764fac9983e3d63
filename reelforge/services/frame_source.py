"""
Frame sources produce the rendered slide images for a job.
Layout composition lives outside the render queue; TextCardFrameSource is the
built-in fallback that draws each slide's text on a plain portrait card.
"""
from io import BytesIO
from typing import List
import textwrap
from PIL import Image, ImageDraw, ImageFont
from sqlalchemy.orm import sessionmaker, selectinload
from reelforge.errors import ValidationError, IdeaNotFoundError
from reelforge.models.idea import Idea, PersonaVariant, CountryVariant
from reelforge.models.render_job import RenderJob
from reelforge.services.video_compiler import SlideFrame
import logging

logger = logging.getLogger(__name__)


class FrameSource:
    def get_frames(self, job: RenderJob) -> List[SlideFrame]:
        """Rendered frames for the job's persona/country, in any order"""
        raise NotImplementedError


class TextCardFrameSource(FrameSource):
    def __init__(
        self,
        session_factory: sessionmaker,
        width: int = 1080,
        height: int = 1920,
        background: str = "#0F1A2C",
        color: str = "#FFFFFF",
        font_size: int = 72,
    ):
        self.session_factory = session_factory
        self.width = width
        self.height = height
        self.background = background
        self.color = color
        self.font_size = font_size

    def _load_font(self):
        try:
            return ImageFont.truetype("DejaVuSans-Bold.ttf", self.font_size)
        except OSError:
            return ImageFont.load_default()

    def render_card(self, text: str) -> bytes:
        image = Image.new("RGB", (self.width, self.height), self.background)
        draw = ImageDraw.Draw(image)
        wrapped = "\n".join(textwrap.wrap(text, width=22)) if text else ""
        if wrapped:
            font = self._load_font()
            left, top, right, bottom = draw.multiline_textbbox((0, 0), wrapped, font=font, spacing=16)
            x = (self.width - (right - left)) / 2 - left
            y = (self.height - (bottom - top)) / 2 - top
            draw.multiline_text((x, y), wrapped, fill=self.color, font=font, align="center", spacing=16)
        buffer = BytesIO()
        image.save(buffer, format="PNG")
        return buffer.getvalue()

    def get_frames(self, job: RenderJob) -> List[SlideFrame]:
        db = self.session_factory()
        try:
            idea = db.query(Idea).options(
                selectinload(Idea.personas)
                .selectinload(PersonaVariant.countries)
                .selectinload(CountryVariant.slides)
            ).filter(Idea.id == job.idea_id).first()
            if not idea:
                raise IdeaNotFoundError(job.idea_id)

            persona = next((p for p in idea.personas if p.persona_type == job.persona_type), None)
            if not persona:
                raise ValidationError(f'Persona "{job.persona_type}" not found')

            country = next((c for c in persona.countries if c.country == job.country), None)
            if not country:
                raise ValidationError(
                    f'Country "{job.country}" not found for persona "{job.persona_type}"'
                )

            slides = [(s.slide_number, s.content) for s in country.slides if s.content]
        finally:
            db.close()

        logger.info(f"Rendering {len(slides)} text cards for job {job.id}")
        return [SlideFrame(slide_number=n, image=self.render_card(content)) for n, content in slides]
