"""Free-text matching of requirements and keywords against candidate text.

Combines whole-phrase matching, skill synonym resolution, Porter stemming and
fuzzy matching. Used by the Fit Scorer to classify how a requirement is
evidenced and by the Bullet Synthesizer to verify keyword coverage.
"""

import logging
import re

from nltk.stem import PorterStemmer
from rapidfuzz import fuzz

from models.schemas.fit_assessment import MatchType

logger = logging.getLogger(__name__)

_stemmer = PorterStemmer()

# ---------------------------------------------------------------------------
# Skill synonym mapping: aliases -> canonical form
# Applied before matching so "K8s" and "Kubernetes" both resolve to "kubernetes"
# ---------------------------------------------------------------------------
SKILL_SYNONYMS: dict[str, str] = {
    # JavaScript ecosystem
    "js": "javascript", "es6": "javascript",
    "ts": "typescript",
    "react.js": "react", "reactjs": "react",
    "vue.js": "vue", "vuejs": "vue",
    "nodejs": "node.js",
    "nextjs": "next.js",
    # Python ecosystem
    "py": "python", "python3": "python",
    "sklearn": "scikit-learn",
    "torch": "pytorch",
    # Cloud & DevOps
    "k8s": "kubernetes", "kube": "kubernetes",
    "amazon web services": "aws",
    "google cloud": "gcp", "google cloud platform": "gcp",
    "microsoft azure": "azure",
    "cicd": "ci/cd", "continuous integration": "ci/cd",
    # Databases
    "postgres": "postgresql",
    "mongo": "mongodb",
    "mssql": "sql server", "ms sql": "sql server",
    # Languages
    "c sharp": "c#", "csharp": "c#",
    "cpp": "c++",
    "golang": "go",
    # AI/ML
    "ml": "machine learning",
    "dl": "deep learning",
    "nlp": "natural language processing",
    "gen ai": "generative ai", "genai": "generative ai",
    "large language model": "llm", "large language models": "llm",
    # Product & business
    "product manager": "product management",
    "project mgmt": "project management",
    "a/b testing": "experimentation", "ab testing": "experimentation",
    "b2b saas": "saas", "software as a service": "saas",
    "okrs": "okr",
    "kpis": "kpi",
    # Soft skills
    "led": "leadership", "leading": "leadership",
    "mentored": "mentoring", "mentorship": "mentoring",
    "cross functional": "cross functional collaboration",
    "stakeholder communication": "stakeholder management",
    "agile methodology": "agile", "agile/scrum": "agile",
}

# Words that carry no matching signal inside a requirement sentence
FILLER_WORDS: frozenset[str] = frozenset({
    "experience", "experienced", "proficiency", "proficient", "knowledge",
    "familiarity", "familiar", "strong", "excellent", "solid", "good", "deep",
    "proven", "demonstrated", "ability", "able", "skills", "skill",
    "expertise", "expert", "understanding", "background", "track", "record",
    "hands-on", "hands", "working", "work", "with", "in", "of", "and", "or",
    "the", "a", "an", "to", "using", "use", "on", "for", "at", "as", "plus",
    "preferred", "required", "must", "have", "has", "be", "is", "are", "etc",
    "including", "related", "similar", "adjacent", "equivalent", "years",
    "year", "yrs", "minimum", "least", "professional", "field", "fields",
    "highly", "very", "effective", "effectively", "comfortable", "environment",
})

# "or related", "or similar field", "or adjacent roles", ...
_RELATED_QUALIFIER_RE = re.compile(
    r"\bor\s+(?:a\s+|an\s+)?(?:closely\s+)?(?:related|similar|adjacent|equivalent|comparable)\b",
    re.IGNORECASE,
)

# Fuzzy match threshold (0-100). 85+ catches "Postgres" -> "PostgreSQL" etc.
FUZZY_THRESHOLD = 85


def normalize(text: str) -> str:
    """Lower-case, drop punctuation except inside tech terms, collapse spaces."""
    # Strip sentence-ending periods but keep dots in tech terms like "node.js"
    text = re.sub(r"\.(\s|$)", " ", text.lower())
    text = re.sub(r"(?<=[a-z])-(?=[a-z])", " ", text)
    text = re.sub(r"[^a-z0-9.#+/ -]", " ", text)
    return re.sub(r"\s+", " ", text).strip()


def stem_text(normalized: str) -> str:
    return " ".join(_stemmer.stem(w) for w in normalized.split())


def canonicalize(term: str) -> str:
    """Resolve a term to its canonical form via the synonym dictionary."""
    lower = normalize(term)
    return SKILL_SYNONYMS.get(lower, lower)


def aliases_of(term: str) -> set[str]:
    """All known spellings of a term, including its canonical form."""
    canon = canonicalize(term)
    names = {canon}
    names.update(alias for alias, target in SKILL_SYNONYMS.items() if target == canon)
    return names


def has_related_qualifier(text: str) -> bool:
    """True for "or related", "or similar" style qualifiers."""
    return bool(_RELATED_QUALIFIER_RE.search(text))


def key_terms(requirement: str) -> list[str]:
    """Meaningful tokens of a requirement sentence, in order."""
    return [w for w in normalize(requirement).split() if w not in FILLER_WORDS and len(w) > 1]


def core_phrase(requirement: str) -> str:
    """Requirement sentence with filler words removed, e.g. 'SQL proficiency' -> 'sql'."""
    return " ".join(key_terms(requirement))


def contains_phrase(text_norm: str, phrase_norm: str) -> bool:
    """Whole-phrase containment on normalized text.

    Boundaries keep "java" from matching inside "javascript" and "gin" inside
    "engineer".
    """
    if not phrase_norm:
        return False
    escaped = re.escape(phrase_norm)
    return re.search(rf"(?<![a-z0-9.#+]){escaped}(?![a-z0-9+#])", text_norm) is not None


def _ngrams(words: list[str], n: int) -> list[str]:
    return [" ".join(words[i:i + n]) for i in range(len(words) - n + 1)]


def _fuzzy_hit(phrase_norm: str, text_norm: str) -> bool:
    """Levenshtein-style match of the phrase against same-length n-grams of the text."""
    n = len(phrase_norm.split())
    if not n or len(phrase_norm) < 4:
        return False
    for gram in _ngrams(text_norm.split(), n):
        if len(gram) >= 3 and fuzz.ratio(phrase_norm, gram) >= FUZZY_THRESHOLD:
            return True
    return False


def classify_match(phrase: str, text: str) -> MatchType:
    """Classify how ``text`` evidences ``phrase``.

    exact   - the phrase appears verbatim (modulo case and punctuation)
    synonym - a known alias, the canonical form or the stemmed phrase appears
    related - at least half of the key terms appear (stemmed), or a fuzzy hit
    none    - nothing usable
    """
    phrase_norm = core_phrase(phrase) or normalize(phrase)
    text_norm = normalize(text)
    if not phrase_norm or not text_norm:
        return MatchType.NONE

    if contains_phrase(text_norm, phrase_norm):
        return MatchType.EXACT

    # Two-letter aliases ("go", "ts", "py") only count when spelled that way in the requirement
    for alias in aliases_of(phrase_norm):
        if alias == phrase_norm or len(alias) <= 2:
            continue
        if contains_phrase(text_norm, alias):
            return MatchType.SYNONYM

    text_stemmed = stem_text(text_norm)
    if contains_phrase(text_stemmed, stem_text(phrase_norm)):
        return MatchType.SYNONYM

    terms = phrase_norm.split()
    if len(terms) >= 2:
        text_stems = set(text_stemmed.split())
        found = sum(1 for t in terms if _stemmer.stem(t) in text_stems)
        if found * 2 >= len(terms):
            return MatchType.RELATED

    if _fuzzy_hit(phrase_norm, text_norm):
        return MatchType.RELATED

    return MatchType.NONE


def is_keyword_in_text(text: str, keyword: str, match_type: str) -> bool:
    """Check a keyword really appears in generated text.

    ``exact`` requires the keyword as a whole phrase. ``flexible`` accepts
    any word form: every word of the keyword must match a word of the text by
    stem. Words of three letters or fewer always need an exact word match.
    """
    text_norm = normalize(text)
    kw_norm = normalize(keyword)
    if not kw_norm:
        return False

    if match_type == "exact":
        return contains_phrase(text_norm, kw_norm)

    kw_words = kw_norm.split()
    if len(kw_words) == 1 and len(kw_words[0]) <= 2:
        return contains_phrase(text_norm, kw_norm)

    text_words = set(text_norm.split())
    text_stems = {_stemmer.stem(w) for w in text_words}
    for word in kw_words:
        if len(word) <= 3:
            if word not in text_words:
                return False
        elif _stemmer.stem(word) not in text_stems:
            return False
    return True
