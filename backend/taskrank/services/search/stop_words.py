"""
Built-in stop words per language.

Besides grammatical filler, each list carries the generic request words
("show", "task", "什么") that say nothing about which items are wanted, so a
query made only of them ends up with no keywords and is treated as vague.
"""
from typing import Dict, FrozenSet, Iterable

STOP_WORDS: Dict[str, FrozenSet[str]] = {
    "en": frozenset({
        "a", "an", "the", "and", "or", "but", "for", "of", "with", "by", "from",
        "as", "is", "was", "are", "were", "be", "been", "am", "to", "in", "on",
        "at", "into", "about", "it", "its", "this", "that", "these", "those",
        "me", "my", "mine", "i", "we", "our", "you", "your", "all", "any", "some",
        "how", "what", "when", "where", "why", "which", "who", "whom", "whose",
        "do", "does", "did", "can", "could", "should", "would", "will", "shall",
        "may", "might", "must", "have", "has", "had", "need", "needs", "want",
        "please", "show", "list", "find", "give", "get", "tell", "see",
        "task", "tasks", "item", "items", "thing", "things", "work", "first",
        "there", "here", "now", "then", "so", "just", "also", "only",
    }),
    "zh": frozenset({
        "我", "我们", "你", "的", "了", "吗", "呢", "啊", "吧", "和", "与", "在",
        "是", "有", "要", "把", "给", "都", "也", "还", "就", "请",
        "如何", "怎么", "怎样", "什么", "哪些", "哪个", "哪里", "为什么",
        "应该", "需要", "可以", "显示", "列出", "查找", "所有", "全部",
        "任务", "事情", "工作", "一下", "先",
    }),
    "sv": frozenset({
        "och", "eller", "men", "för", "av", "med", "från", "som", "är", "var",
        "att", "till", "på", "om", "det", "den", "de", "detta", "jag", "mig",
        "min", "mitt", "mina", "vi", "du", "alla", "vad", "när", "var", "vilka",
        "vilken", "hur", "varför", "ska", "borde", "kan", "vill", "visa",
        "uppgift", "uppgifter", "göra",
    }),
}

AUTO = "auto"


def stop_words_for(locale: str, extra: Iterable[str] = ()) -> FrozenSet[str]:
    """
    Stop words for a locale plus user stop words.

    `auto` (and any locale without its own list) uses every built-in list.
    """
    base = STOP_WORDS.get((locale or AUTO).lower())
    if base is None:
        base = frozenset().union(*STOP_WORDS.values())
    return base | frozenset(word.strip().lower() for word in extra if word.strip())
