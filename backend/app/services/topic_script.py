"""Topic-to-script generation for faceless short videos (Groq)"""
import logging
import re
from typing import Any, Dict, List, Optional

import httpx

from app.services.script_service import ChatCompletionProvider, parse_json_content

scripts_logger = logging.getLogger("scripts")

TOPIC_MODEL = "llama-3.3-70b-versatile"
GROQ_API = "https://api.groq.com/openai/v1"
WORDS_PER_MINUTE = 150
MIN_HASHTAGS = 5
MAX_HASHTAGS = 8

LENGTH_WORDS = {
    "short": "150-250 words (30-45 seconds)",
    "medium": "300-500 words (1-2 minutes)",
    "long": "600-900 words (3-5 minutes)",
}

TONE_STYLES = {
    "educational": "informative and authoritative, sharing valuable insights",
    "entertaining": "fun and engaging, using storytelling and humor",
    "motivational": "inspiring and uplifting, driving action",
    "controversial": "provocative and attention-grabbing, sparking debate",
    "informative": "clear and concise, presenting facts",
}

SYSTEM_PROMPT = """You are an expert viral content script writer for faceless YouTube/shorts videos.
Generate engaging, scroll-stopping scripts that hook viewers in the first 3 seconds.
Write in a natural, conversational tone that feels like a real person speaking.
Keep sentences short and punchy for better voiceover pacing.
Output ONLY valid JSON in the exact format specified."""

FILLER_HASHTAGS = ["#shorts", "#viral", "#fyp", "#trending", "#facts", "#faceless", "#explore", "#learn"]

NICHES = [
    {"id": "scary_stories", "name": "Scary Stories", "icon": "👻", "color": "#7c3aed"},
    {"id": "true_crime", "name": "True Crime", "icon": "🔍", "color": "#dc2626"},
    {"id": "real_tragedies", "name": "Real Tragedies", "icon": "😢", "color": "#4b5563"},
    {"id": "anime_stories", "name": "Anime Stories", "icon": "🎌", "color": "#ec4899"},
    {"id": "heists", "name": "Heists & Crimes", "icon": "💰", "color": "#059669"},
    {"id": "history", "name": "History & Facts", "icon": "📚", "color": "#d97706"},
    {"id": "motivation", "name": "Motivation & Self-Help", "icon": "💪", "color": "#2563eb"},
    {"id": "technology", "name": "Technology & AI", "icon": "🤖", "color": "#0ea5e9"},
    {"id": "science", "name": "Science & Discovery", "icon": "🔬", "color": "#8b5cf6"},
    {"id": "business", "name": "Business & Finance", "icon": "💰", "color": "#10b981"},
    {"id": "health", "name": "Health & Wellness", "icon": "🏃", "color": "#f43f5e"},
    {"id": "entertainment", "name": "Entertainment & Pop Culture", "icon": "🎬", "color": "#f59e0b"},
    {"id": "gaming", "name": "Gaming & Esports", "icon": "🎮", "color": "#6366f1"},
    {"id": "education", "name": "Education & Learning", "icon": "📖", "color": "#14b8a6"},
    {"id": "lifestyle", "name": "Lifestyle & DIY", "icon": "🏠", "color": "#84cc16"},
]

DEFAULT_TOPICS: Dict[str, List[str]] = {
    "scary_stories": [
        "The Creepiest Unexplained Sound Ever Recorded",
        "What I Found Behind My Walls at Night",
        "People Who Vanished Without a Trace",
        "The Sleepover That Went Wrong",
        "Objects That Should Not Exist",
    ],
    "true_crime": [
        "The Unsolved Murder That Still Haunts This Town",
        "How a Fingerprint Solved a 30-Year-Old Case",
        "The Wrongful Conviction That Shocked Everyone",
        "Cold Case Files: The Girl in the Woods",
        "The Disappearance Everyone Forgot",
    ],
    "real_tragedies": [
        "The Last Words Survivors Said",
        "Tragic Events That Changed Lives Forever",
        "What Really Happened That Day",
        "Heroes Who Died Saving Others",
        "The Story Nobody Wanted to Tell",
    ],
    "anime_stories": [
        "The Dark Origin of Your Favorite Character",
        "What the Ending Really Meant",
        "Scenes That Were Too Intense to Air",
        "The Creator Secretly Hid This Message",
        "Fans Were Never the Same After This Episode",
    ],
    "heists": [
        "The Perfect Crime Nobody Solved",
        "How They Stole Millions in Plain Sight",
        "The Heist That Went Wrong",
        "Robbers Who Got Away With Everything",
        "The Smartest Criminals in History",
    ],
    "motivation": [
        "5 Morning Habits That Changed My Life",
        "Why You're Not Successful Yet",
        "The Only Productivity Hack You Need",
        "Stop Making This Mistake",
        "Life Lessons From 90-Year-Olds",
    ],
    "technology": [
        "AI Just Changed Everything",
        "The Future of Work",
        "Why Programming Matters",
        "Tech Trends to Watch in 2026",
        "How AI Will Replace Jobs",
    ],
    "history": [
        "The Most Interesting Fact About History",
        "What They Don't Teach You About History",
        "The Truth About Historical Events",
        "Historical Events That Changed Everything",
        "Ancient Secrets Revealed",
    ],
    "science": [
        "Mind-Blowing Science Facts",
        "The Science Behind Success",
        "Why Your Brain Lies to You",
        "The Universe Explained Simply",
        "Science Facts That Sound Fake",
    ],
    "business": [
        "How to Start With $0",
        "Business Models That Work",
        "The Rich Think Differently",
        "Side Hustles That Actually Work",
        "Money Mistakes to Avoid",
    ],
    "health": [
        "Health Myths Busted",
        "The Morning Routine Experts Recommend",
        "Why You're Always Tired",
        "Simple Health Hacks That Work",
        "The Truth About Dieting",
    ],
    "entertainment": [
        "Behind the Scenes Secrets",
        "What You Missed This Week",
        "Top Trending Stories",
        "The Most Surprising Moments",
        "Viral Trends Explained",
    ],
    "general": [
        "Things You Didn't Know About",
        "The Internet Is Shocked",
        "Wait Until You See This",
        "This Went Viral for a Reason",
        "Everyone Is Talking About This",
    ],
}


def get_default_topics(niche: Optional[str]) -> List[str]:
    return DEFAULT_TOPICS.get((niche or "").strip().lower(), DEFAULT_TOPICS["general"])


def build_script_prompt(topic: str, niche: Optional[str] = None, tone: Optional[str] = None,
                        length: Optional[str] = None, language: Optional[str] = None) -> str:
    tone_key = tone if tone in TONE_STYLES else "educational"
    length_text = LENGTH_WORDS.get(length or "", LENGTH_WORDS["medium"])

    return f"""Generate a viral faceless video script about: "{topic}"

Context:
- Niche: {niche or 'General'}
- Tone: {tone_key} - {TONE_STYLES[tone_key]}
- Length: {length_text}
- Language: {language or 'English'}

Requirements:
1. Start with a BANGING hook (first 3 seconds - no intro, just attention)
2. Main content should flow naturally and keep viewers watching
3. End with a clear call-to-action
4. Include 5-8 relevant hashtags
5. Estimated duration in seconds should match the word count at typical speaking pace

Return ONLY this JSON format (no markdown, no explanation):
{{
  "title": "Engaging Video Title",
  "sections": {{
    "hook": "The first 2-3 sentences that grab attention (15-30 words)",
    "mainContent": "The bulk of the content (body paragraphs)",
    "callToAction": "Final message asking viewer to subscribe, like, or comment"
  }},
  "hashtags": ["#topic1", "#topic2", "#relevant", "#viral", "#faceless"],
  "estimatedDuration": 90
}}"""


def _hashtag(value: Any) -> Optional[str]:
    text = re.sub(r"\s+", "", str(value or "")).lstrip("#")
    return f"#{text}" if text else None


def normalize_hashtags(raw: Any, topic: str) -> List[str]:
    """Between MIN_HASHTAGS and MAX_HASHTAGS unique #tags"""
    if isinstance(raw, str):
        raw = raw.replace(",", " ").split()
    elif not isinstance(raw, (list, tuple)):
        raw = []
    tags: List[str] = []
    for value in raw or []:
        tag = _hashtag(value)
        if tag and tag.lower() not in {t.lower() for t in tags}:
            tags.append(tag)

    topic_tag = _hashtag(re.sub(r"[^\w]", "", topic.title()))
    candidates = ([topic_tag] if topic_tag else []) + FILLER_HASHTAGS
    for tag in candidates:
        if len(tags) >= MIN_HASHTAGS:
            break
        if tag.lower() not in {t.lower() for t in tags}:
            tags.append(tag)
    return tags[:MAX_HASHTAGS]


def estimate_duration(sections: Dict[str, str]) -> int:
    words = sum(len(text.split()) for text in sections.values())
    return max(1, round(words / WORDS_PER_MINUTE * 60))


def normalize_script(raw: Dict[str, Any], topic: str) -> Dict[str, Any]:
    """Coerce model output into {title, sections, hashtags, estimatedDuration}"""
    sections_raw = raw.get("sections") if isinstance(raw.get("sections"), dict) else {}
    sections = {
        key: str(sections_raw.get(key) or "").strip()
        for key in ("hook", "mainContent", "callToAction")
    }

    try:
        duration = int(float(raw.get("estimatedDuration")))
    except (TypeError, ValueError):
        duration = 0
    if duration <= 0:
        duration = estimate_duration(sections)

    return {
        "title": str(raw.get("title") or topic).strip(),
        "sections": sections,
        "hashtags": normalize_hashtags(raw.get("hashtags"), topic),
        "estimatedDuration": duration,
    }


class TopicScriptService:
    """Generates full narration scripts from a topic. Groq keys start with gsk_."""

    def __init__(self, api_key: Optional[str], transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = (api_key or "").strip()
        self.llm = ChatCompletionProvider("groq", GROQ_API, TOPIC_MODEL, self.api_key, transport=transport)

    def is_available(self) -> bool:
        return self.api_key.startswith("gsk_")

    async def generate_script(self, options: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Returns the normalized script, or None when generation fails"""
        if not self.is_available():
            return None

        topic = (options.get("topic") or "").strip()
        prompt = build_script_prompt(
            topic, options.get("niche"), options.get("tone"), options.get("length"), options.get("language")
        )
        try:
            content = await self.llm.complete(
                [{"role": "system", "content": SYSTEM_PROMPT}, {"role": "user", "content": prompt}],
                temperature=0.7,
                max_tokens=2000,
            )
            raw = parse_json_content(content)
            if not isinstance(raw, dict):
                raise ValueError("script is not a JSON object")
        except (httpx.HTTPError, ValueError) as e:
            scripts_logger.error(f"❌ Topic script generation failed: {e}", extra={"topic": topic})
            return None

        script = normalize_script(raw, topic)
        scripts_logger.info(f"✅ Generated topic script '{script['title']}' ({script['estimatedDuration']}s)")
        return script

    async def get_suggested_topics(self, niche: str, count: int = 5) -> List[str]:
        if not self.is_available():
            return get_default_topics(niche)

        try:
            content = await self.llm.complete(
                [
                    {"role": "system", "content": "You are a viral content strategist. Generate popular video topics."},
                    {"role": "user", "content": (
                        f'Generate {count} viral faceless video topics for the "{niche}" niche. '
                        'Return ONLY a JSON array of strings with no markdown formatting.'
                    )},
                ],
                temperature=0.8,
                max_tokens=500,
            )
            topics = parse_json_content(content)
        except (httpx.HTTPError, ValueError) as e:
            scripts_logger.warning(f"Topic suggestions failed, using defaults: {e}")
            return get_default_topics(niche)

        if isinstance(topics, dict):
            topics = topics.get("topics") or []
        if not isinstance(topics, list) or not topics:
            return get_default_topics(niche)
        return [str(t) for t in topics][:count]
