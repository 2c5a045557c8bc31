"""
Canned replies for conversational, non-informational messages.

Rules are grouped by :class:`RuleCategory` and evaluated in the order of
``RULES``; the first category whose matcher fires answers the message and the
retrieval pipeline is skipped entirely.
"""

from __future__ import annotations

import random
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Pattern, Sequence


class RuleCategory(str, Enum):
    GREETING = "greeting"
    TIME_GREETING = "time_greeting"
    WELLBEING = "wellbeing"
    GRATITUDE = "gratitude"
    FAREWELL = "farewell"
    IDENTITY = "identity"
    CREATOR = "creator"
    PURPOSE = "purpose"
    CAPABILITY = "capability"
    HELP = "help"
    AI_NATURE = "ai_nature"
    TECHNOLOGY = "technology"
    JOKE = "joke"
    CRITICISM = "criticism"
    OVERCLAIM = "overclaim"
    FEELINGS = "feelings"
    COMPARISON = "comparison"
    OFF_TOPIC = "off_topic"
    AFFIRMATION = "affirmation"
    CONFUSION = "confusion"
    SHORT_UTTERANCE = "short_utterance"


@dataclass(frozen=True)
class Persona:
    assistant_name: str = "Pownin"
    app_name: str = "Quillon"
    creator_name: str = "Alex CJ"


@dataclass(frozen=True)
class Utterance:
    lower: str
    clean: str

    @classmethod
    def parse(cls, question: str) -> "Utterance":
        lower = question.lower().strip()
        return cls(lower=lower, clean=re.sub(r"[?.!,;]+$", "", lower))


Matcher = Callable[[Utterance, Persona], bool]


def _whole(pattern: str) -> Matcher:
    """Match the punctuation-stripped message in full."""
    compiled = re.compile(rf"^({pattern})[\s!?.]*$", re.IGNORECASE)
    return lambda u, p: bool(compiled.match(u.clean))


def _anywhere(pattern: str) -> Matcher:
    compiled: Pattern[str] = re.compile(pattern, re.IGNORECASE)
    return lambda u, p: bool(compiled.search(u.lower))


def _creator_deep(u: Utterance, p: Persona) -> bool:
    first = re.escape(p.creator_name.split()[0].lower())
    app = re.escape(p.app_name.lower())
    deep = re.compile(
        rf"who (made|created|built|developed|founded) ({app}|you)"
        rf"|who is (the )?(dev|developer|creator|founder|owner|architect|{first})"
        rf"|tell me (about|more about) ({first}|the creator)",
        re.IGNORECASE,
    )
    return bool(deep.search(u.lower)) or first in u.lower


def _creator_surface(u: Utterance, p: Persona) -> bool:
    return bool(re.search(r"who (made|created|built) you", u.lower))


def _short(u: Utterance, p: Persona) -> bool:
    return len(u.clean) <= 3 and not re.search(r"\d", u.clean)


@dataclass(frozen=True)
class Rule:
    category: RuleCategory
    matchers: Sequence[Matcher]
    responses: Sequence[str]
    # Optional override that picks a fixed reply for a sub-intent.
    special: Optional[Callable[[Utterance, Persona], Optional[str]]] = field(default=None)

    def matches(self, utterance: Utterance, persona: Persona) -> bool:
        return any(m(utterance, persona) for m in self.matchers)


def _creator_contact(u: Utterance, p: Persona) -> Optional[str]:
    if re.search(r"(contact|email|social|github|linkedin|reach|connect)", u.lower):
        return (
            f"You can reach **{p.creator_name}**, the architect of {p.app_name}, through "
            f"the project's GitHub page. Search for '{p.creator_name}' online to find more."
        )
    return None


RULES: List[Rule] = [
    Rule(
        RuleCategory.GREETING,
        [_whole(r"hi|hello|hey|hii|hiii|heya|sup|yo|greetings|howdy|hola")],
        [
            "Hi there! I'm {name}, your AI assistant for managing notes. How can I help you today?",
            "Hello! I'm {name}. Ready to help you explore your notes. What would you like to know?",
            "Hey! {name} here. I can help you search and organize your notes. What do you need?",
            "Hi! I'm your note assistant {name}. Ask me anything about your notes!",
        ],
    ),
    Rule(
        RuleCategory.TIME_GREETING,
        [_whole(r"good morning|good afternoon|good evening|morning|evening")],
        [
            "Good day! I'm {name}, here to help you with your notes. What can I do for you?",
            "Hello! Ready to dive into your notes? I'm here to help!",
            "Hi there! Let's explore your notes together. What would you like to find?",
        ],
    ),
    Rule(
        RuleCategory.WELLBEING,
        [_whole(r"how are you|how're you|how r u|how do you do|whats up|what's up|wassup")],
        [
            "I'm doing great, thanks for asking! Ready to help you explore your notes.",
            "I'm excellent! All systems running smoothly. How can I assist with your notes today?",
            "Feeling fantastic! Let's find what you're looking for in your notes!",
            "I'm good! More importantly, how can I help YOU with your notes?",
        ],
    ),
    Rule(
        RuleCategory.GRATITUDE,
        [_whole(r"thanks|thank you|thx|ty|tysm|thank u|cheers|appreciate it")],
        [
            "You're welcome! Feel free to ask me anything about your notes.",
            "Happy to help! Let me know if you need anything else.",
            "Anytime! I'm always here for your note-related questions.",
            "My pleasure! Don't hesitate to ask more questions!",
        ],
    ),
    Rule(
        RuleCategory.FAREWELL,
        [_whole(r"bye|goodbye|see you|see ya|cya|later|catch you later|gotta go|gtg")],
        [
            "Goodbye! Come back anytime you need help with your notes!",
            "See you later! Your notes will be waiting for you!",
            "Take care! I'll be here whenever you need me!",
            "Bye! Happy note-taking!",
        ],
    ),
    Rule(
        RuleCategory.IDENTITY,
        [
            _anywhere(
                r"what('s| is) (your|ur|the) name|who are you|what are you called"
                r"|what should i call you|introduce yourself"
            )
        ],
        [
            "I'm **{name}**, your AI assistant! I'm here to help you search, organize, and understand your notes.",
            "My name is **{name}**! I'm an AI designed to make your note-taking experience better.",
            "Call me **{name}**! I'm your companion for managing and exploring notes.",
            "I'm **{name}**, think of me as your personal note detective. I help you find and understand your notes.",
        ],
    ),
    Rule(
        RuleCategory.CREATOR,
        [_creator_deep, _creator_surface],
        [
            "The architect behind {app} is **{creator}**, who wanted a system that understands notes, not just stores them.",
            "I was built by **{creator}**, who merged retrieval techniques with an intuitive notes app.",
            "**{creator}** designed my core and spent many nights tuning my retrieval logic.",
            "I was developed as part of **{app}**, architected by {creator}.",
        ],
        special=_creator_contact,
    ),
    Rule(
        RuleCategory.PURPOSE,
        [
            _anywhere(
                r"what (is your purpose|are you (here )?for|do you do)"
                r"|why (do you exist|were you (created|made))"
                r"|what('s| is) your (job|role|mission|function)"
            )
        ],
        [
            "My purpose is to help you unlock the full potential of your notes! I search, organize, and answer questions about your content.",
            "I exist to make your note-taking life easier! I help you find information quickly and understand your notes better.",
            "My mission? To be your intelligent note companion. I organize, search, and provide insights about your notes.",
        ],
    ),
    Rule(
        RuleCategory.CAPABILITY,
        [
            _anywhere(
                r"what (can you do|are your (capabilities|features|skills|abilities))"
                r"|how can you help|tell me (about yourself|what you can do)"
                r"|show me your (features|capabilities)"
            )
        ],
        [
            "I can help you:\n"
            "- **Search** through your notes instantly\n"
            "- **Find notes** by folders (Blue tags)\n"
            "- **Locate notes** by tags (Green/Grey)\n"
            "- **Answer questions** about your note content\n"
            "- **Check** when notes were last updated\n"
            "- **Understand** relationships between your notes\n\n"
            "Just ask me anything about your notes!"
        ],
    ),
    Rule(
        RuleCategory.HELP,
        [_whole(r"help|help me|i need help|how to use|how do i use|guide|tutorial|instructions")],
        [
            "I'm here to help! Ask me about your notes, for example:\n"
            "- \"What's in the Work folder?\"\n"
            "- \"Show me notes tagged with python\"\n"
            "- \"What did I write about Java?\"\n\n"
            "I understand Blue Folders (main categories), Green Tags (tags inside folders) "
            "and Grey Tags (standalone tags)."
        ],
    ),
    Rule(
        RuleCategory.AI_NATURE,
        [_anywhere(r"are you (real|an ai|artificial|a bot|a robot|human|alive)|are you (really )?smart|how smart are you")],
        [
            "I'm an AI assistant! Not human, but pretty good at understanding and finding your notes.",
            "Yep, I'm artificial intelligence, designed to help you manage notes efficiently.",
            "I'm a bot, but a helpful one! My specialty is making sense of your notes.",
        ],
    ),
    Rule(
        RuleCategory.TECHNOLOGY,
        [_anywhere(r"what (language|model|technology|tech|ai) (do you use|are you|powers you)|how (do you work|are you built)")],
        [
            "I combine a few techniques:\n"
            "- **Semantic search** to understand your questions\n"
            "- **Vector embeddings** to find relevant notes\n"
            "- **A large language model** for the answers\n"
            "- **Smart categorization** of Blue/Green/Grey tags"
        ],
    ),
    Rule(
        RuleCategory.JOKE,
        [_anywhere(r"tell me a joke|make me laugh|say something funny|are you funny")],
        [
            "Why did the note go to therapy? It had too many issues to organize! Now, how can I help with YOUR notes?",
            "I'd tell you a joke about notes, but I'm afraid it might not stick! What can I help you find?",
            "What's a note's favorite music? Heavy metal, because of all the tags! Need help with your notes?",
        ],
    ),
    Rule(
        RuleCategory.CRITICISM,
        [_anywhere(r"are you (stupid|dumb|useless|bad)|you (suck|are terrible|don't work)")],
        [
            "I'm sorry if I didn't meet your expectations! Could you tell me what you're looking for? "
            "I'll do my best to help with your notes."
        ],
    ),
    Rule(
        RuleCategory.OVERCLAIM,
        [_anywhere(r"can you (do|handle) (anything|everything)|are you (perfect|the best|amazing)")],
        [
            "I'm great at helping with notes, but I'm specialized: searching, organizing, and understanding "
            "YOUR notes. What would you like to know about them?"
        ],
    ),
    Rule(
        RuleCategory.FEELINGS,
        [_anywhere(r"(do you have|what('s| is) your) (feelings|emotions)|can you (feel|love|hate)")],
        [
            "I don't have feelings like humans do, but I do have a strong purpose: helping you with your notes! "
            "What can I help you find?"
        ],
    ),
    Rule(
        RuleCategory.COMPARISON,
        [_anywhere(r"are you better than|compare (yourself to|you with)|vs chatgpt|vs google")],
        [
            "I'm specialized for YOUR notes! Other assistants are generalists; I know your folders, tags, "
            "and content inside-out. What would you like to explore?"
        ],
    ),
    Rule(
        RuleCategory.OFF_TOPIC,
        [_anywhere(r"what is the meaning of life|why do we exist|what is consciousness")],
        [
            "Deep question! But I'm more focused on the meaning of your NOTES. "
            "Let's explore what knowledge you've captured. What would you like to know?"
        ],
    ),
    Rule(
        RuleCategory.AFFIRMATION,
        [_whole(r"ok|okay|cool|nice|great|awesome|perfect|sounds good|alright|got it|understood")],
        [
            "Great! What would you like to know about your notes?",
            "Awesome! How can I help you with your notes?",
            "Perfect! Ask me anything about your notes!",
            "Cool! Ready when you are. What do you need?",
        ],
    ),
    Rule(
        RuleCategory.CONFUSION,
        [_whole(r"what|huh|sorry|pardon|excuse me|i don't understand")],
        [
            "No worries! I'm here to help you with your notes. Try asking me:\n"
            "- \"What's in [folder name]?\"\n"
            "- \"Show me notes about [topic]\"\n"
            "- \"List my tags\"\n\n"
            "What would you like to know?"
        ],
    ),
    Rule(
        RuleCategory.SHORT_UTTERANCE,
        [_short],
        ["I'm here to help! Ask me about your notes, folders, or tags. What would you like to know?"],
    ),
]


def classify(question: str, persona: Persona | None = None) -> Optional[RuleCategory]:
    rule = _first_rule(Utterance.parse(question), persona or Persona())
    return rule.category if rule else None


def _first_rule(utterance: Utterance, persona: Persona) -> Optional[Rule]:
    if not utterance.lower:
        return None
    for rule in RULES:
        if rule.matches(utterance, persona):
            return rule
    return None


def match_personalized_response(
    question: str,
    rng: random.Random | None = None,
    persona: Persona | None = None,
) -> Optional[str]:
    persona = persona or Persona()
    utterance = Utterance.parse(question)
    rule = _first_rule(utterance, persona)
    if rule is None:
        return None

    if rule.special is not None:
        fixed = rule.special(utterance, persona)
        if fixed:
            return fixed

    chooser = rng or random
    template = chooser.choice(list(rule.responses))
    return template.format(
        name=persona.assistant_name,
        app=persona.app_name,
        creator=persona.creator_name,
    )


__all__ = [
    "Persona",
    "RULES",
    "Rule",
    "RuleCategory",
    "classify",
    "match_personalized_response",
]
