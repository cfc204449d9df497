"""Admission control for free-form lesson requests.

How:
  Run an ordered list of stages over the trimmed request text and stop at the
  first stage that rejects it. Every stage is a pure check so the same text
  always yields the same verdict.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

_MIN_LENGTH = 10
_MAX_LENGTH = 1000
_MAX_EMOJIS = 10

# Devanagari, Bengali, Gurmukhi, Gujarati, Oriya, Tamil, Telugu, Kannada, Malayalam.
_INDIC_RANGES = "\u0900-\u097f\u0980-\u09ff\u0a00-\u0a7f\u0a80-\u0aff\u0b00-\u0b7f\u0b80-\u0bff\u0c00-\u0c7f\u0c80-\u0cff\u0d00-\u0d7f"
_NON_LATIN_SCRIPT = re.compile(f"[{_INDIC_RANGES}\u0600-\u06ff]")

# Zero-width marks, BOM, NBSP, and unpaired surrogates that cannot be stored as UTF-8.
_INVISIBLE_CHARS = re.compile("[\u200b-\u200d\ufeff\u00a0\ud800-\udfff]")
_EMOJI = re.compile("[\U0001F600-\U0001F64F\U0001F300-\U0001F5FF\U0001F680-\U0001F6FF\u2600-\u26ff\u2700-\u27bf]")

_ONLY_SPECIAL_CHARS = re.compile(f"[^a-zA-Z0-9\\s{_INDIC_RANGES}]+")
_SPAM_PATTERNS: tuple[re.Pattern[str], ...] = (
  re.compile(r"(.)\1{10,}", re.IGNORECASE),
  re.compile(r"test{3,}", re.IGNORECASE),
  re.compile(r"asdf{2,}", re.IGNORECASE),
  re.compile(r"qwerty", re.IGNORECASE),
)

_SQL_PATTERNS: tuple[re.Pattern[str], ...] = (
  re.compile(r"(\b(SELECT|INSERT|UPDATE|DELETE|DROP|CREATE|ALTER|EXEC|EXECUTE)\b.*\b(FROM|INTO|TABLE|DATABASE)\b)", re.IGNORECASE),
  re.compile(r"(--|\bOR\b.*=.*\bOR\b|;\s*DROP)", re.IGNORECASE),
  re.compile(r"('\s*OR\s*'1'\s*=\s*'1)", re.IGNORECASE),
)

_INJECTION_PATTERNS: tuple[re.Pattern[str], ...] = (
  re.compile(r"ignore\s+(previous|all|above)\s+instructions", re.IGNORECASE),
  re.compile(r"you\s+are\s+(now|a)\s+", re.IGNORECASE),
  re.compile(r"system\s*:\s*", re.IGNORECASE),
  re.compile(r"\[SYSTEM\]", re.IGNORECASE),
  re.compile(r"disregard\s+(previous|all)", re.IGNORECASE),
  re.compile(r"forget\s+(everything|all|previous)", re.IGNORECASE),
)

_OFFENSIVE_PATTERNS: tuple[re.Pattern[str], ...] = (
  re.compile(r"\b(fuck|shit|damn|bitch|ass|sex|porn|xxx|nsfw)\b", re.IGNORECASE),
  re.compile(r"\b(kill|murder|death|suicide|bomb|weapon|gun)\b", re.IGNORECASE),
  re.compile(r"\b(hack|crack|pirate|steal|cheat|illegal)\b", re.IGNORECASE),
)

_LATIN_KEYWORDS: tuple[str, ...] = (
  # English
  r"lesson|learn|teach|explain|understand|study|quiz|test|exam|practice",
  r"topic|subject|concept|theory|example|tutorial|guide|course",
  r"education|knowledge|skill|training|instruction|demonstration",
  r"what|how|why|when|where|who|which",
  r"interactive|diagram|visual|step|chapter|section|activity",
  r"question|answer|solve|problem|exercise|challenge",
  r"math|science|history|english|language|literature|art|music",
  r"physics|chemistry|biology|geography|social|computer|technology",
  r"create|generate|make|build|develop|design",
  # Hindi (romanized)
  r"paath|seekhna|sikhana|samjhana|adhyayan|quiz|pariksha|abhyas",
  r"vishay|avdharna|siddhant|udaharan|tutorial|pathyakram",
  r"shiksha|gyaan|kaushal|prashikshan",
  r"kya|kaise|kyon|kab|kahan|kaun",
  r"ganit|vigyan|itihaas|bhoogol|bhautiki|rasayan|jeevvigyan",
)

_SCRIPT_KEYWORDS: tuple[str, ...] = (
  # Hindi (Devanagari)
  "पाठ|सीखना|सिखाना|समझाना|अध्ययन|क्विज़|परीक्षा|अभ्यास",
  "विषय|अवधारणा|सिद्धांत|उदाहरण|ट्यूटोरियल|पाठ्यक्रम",
  "शिक्षा|ज्ञान|कौशल|प्रशिक्षण",
  "क्या|कैसे|क्यों|कब|कहाँ|कौन",
  "गणित|विज्ञान|इतिहास|भूगोल|भौतिकी|रसायन|जीवविज्ञान",
  # Tamil
  "பாடம்|கற்க|கற்பிக்க|விளக்க|புரிந்து|படிப்பு|வினாடி|தேர்வு|பயிற்சி",
  "தலைப்பு|கருத்து|கோட்பாடு|உதாரணம்",
  "கல்வி|அறிவு|திறன்",
  "என்ன|எப்படி|ஏன்|எப்போது|எங்கே",
  "கணிதம்|அறிவியல்|வரலாறு|புவியியல்|இயற்பியல்|வேதியியல்",
  # Telugu
  "పాఠం|నేర్చుకో|బోధించు|వివరించు|అధ్యయనం|క్విజ్|పరీక్ష|అభ్యాసం",
  "విషయం|భావన|సిద్ధాంతం|ఉదాహరణ|శిక్షణ",
  "విద్య|జ్ఞానం|నైపుణ్యం",
  "ఏమిటి|ఎలా|ఎందుకు|ఎప్పుడు|ఎక్కడ",
  "గణితం|శాస్త్రం|చరిత్ర|భౌగోళికం|భౌతిక|రసాయన",
  # Marathi (Devanagari)
  "धडा|शिकणे|शिकवणे|समजावणे|क्विझ",
  "संकल्पना|मार्गदर्शन",
  "शिक्षण|कौशल्य",
  "काय|कसे|का|केव्हा|कुठे",
  "भौतिकशास्त्र",
  # Bengali
  "পাঠ|শেখা|শেখানো|ব্যাখ্যা|অধ্যয়ন|কুইজ|পরীক্ষা|অনুশীলন",
  "বিষয়|ধারণা|তত্ত্ব|উদাহরণ|টিউটোরিয়াল",
  "শিক্ষা|জ্ঞান|দক্ষতা|প্রশিক্ষণ",
  "কী|কিভাবে|কেন|কখন|কোথায়",
  "গণিত|বিজ্ঞান|ইতিহাস|ভূগোল|পদার্থবিজ্ঞান|রসায়ন",
  # Gujarati
  "પાઠ|શીખવું|શીખવવું|સમજાવો|અભ્યાસ|ક્વિઝ|પરીક્ષા",
  "વિષય|ખ્યાલ|સિદ્ધાંત|ઉદાહરણ",
  "શિક્ષણ|જ્ઞાન|કુશળતા|તાલીમ",
  "શું|કેવી રીતે|શા માટે|ક્યારે|ક્યાં",
  "ગણિત|વિજ્ઞાન|ઇતિહાસ|ભૂગોળ|ભૌતિકશાસ્ત્ર",
  # Kannada
  "ಪಾಠ|ಕಲಿಯಿರಿ|ಕಲಿಸಿ|ವಿವರಿಸಿ|ಅಧ್ಯಯನ|ಕ್ವಿಜ್|ಪರೀಕ್ಷೆ",
  "ವಿಷಯ|ಪರಿಕಲ್ಪನೆ|ಸಿದ್ಧಾಂತ|ಉದಾಹರಣೆ",
  "ಶಿಕ್ಷಣ|ಜ್ಞಾನ|ಕೌಶಲ್ಯ|ತರಬೇತಿ",
  "ಏನು|ಹೇಗೆ|ಏಕೆ|ಯಾವಾಗ|ಎಲ್ಲಿ",
  "ಗಣಿತ|ವಿಜ್ಞಾನ|ಇತಿಹಾಸ|ಭೂಗೋಳ|ಭೌತಶಾಸ್ತ್ರ",
  # Malayalam
  "പാഠം|പഠിക്കുക|പഠിപ്പിക്കുക|വിശദീകരിക്കുക|പഠനം|ക്വിസ്|പരീക്ഷ",
  "വിഷയം|സങ്കല്പം|സിദ്ധാന്തം|ഉദാഹരണം",
  "വിദ്യാഭ്യാസം|അറിവ്|കഴിവ്|പരിശീലനം",
  "എന്ത്|എങ്ങനെ|എന്തുകൊണ്ട്|എപ്പോൾ|എവിടെ",
  "ഗണിതം|ശാസ്ത്രം|ചരിത്രം|ഭൂമിശാസ്ത്രം|ഭൗതികം",
  # Punjabi (Gurmukhi)
  "ਪਾਠ|ਸਿੱਖਣਾ|ਸਿਖਾਉਣਾ|ਸਮਝਾਉਣਾ|ਅਧਿਐਨ|ਕੁਇਜ਼|ਪ੍ਰੀਖਿਆ",
  "ਵਿਸ਼ਾ|ਧਾਰਨਾ|ਸਿਧਾਂਤ|ਉਦਾਹਰਨ",
  "ਸਿੱਖਿਆ|ਗਿਆਨ|ਹੁਨਰ|ਸਿਖਲਾਈ",
  "ਕੀ|ਕਿਵੇਂ|ਕਿਉਂ|ਕਦੋਂ|ਕਿੱਥੇ",
  "ਗਣਿਤ|ਵਿਗਿਆਨ|ਇਤਿਹਾਸ|ਭੂਗੋਲ|ਭੌਤਿਕ",
  # Urdu (Arabic script)
  "سبق|سیکھنا|سکھانا|سمجھانا|مطالعہ|کوئز|امتحان",
  "موضوع|تصور|نظریہ|مثال",
  "تعلیم|علم|مہارت|تربیت",
  "کیا|کیسے|کیوں|کب|کہاں",
  "ریاضی|سائنس|تاریخ|جغرافیہ|طبیعیات",
)

_EDUCATIONAL_KEYWORDS: tuple[re.Pattern[str], ...] = tuple(re.compile(rf"\b({group})\b", re.IGNORECASE | re.ASCII) for group in _LATIN_KEYWORDS) + tuple(re.compile(f"({group})") for group in _SCRIPT_KEYWORDS)

_PROPER_NOUN = re.compile(r"\b[A-Z][a-z]+", re.ASCII)
_DIGIT = re.compile(r"[0-9]")
_CONSONANT_RUN = re.compile(r"[bcdfghjklmnpqrstvwxyz]{6,}", re.IGNORECASE)
_VOWEL_RUN = re.compile(r"[aeiou]{5,}", re.IGNORECASE)
_LESSON_VERB = re.compile(r"\b(lesson|learn|teach|explain|quiz|test)\b", re.IGNORECASE)

# Ordered by precedence; Devanagari text is reported as Hindi/Marathi.
_SCRIPT_NAMES: tuple[tuple[re.Pattern[str], str], ...] = (
  (re.compile("[\u0900-\u097f]"), "Hindi/Marathi (Devanagari)"),
  (re.compile("[\u0a80-\u0aff]"), "Gujarati"),
  (re.compile("[\u0a00-\u0a7f]"), "Punjabi (Gurmukhi)"),
  (re.compile("[\u0980-\u09ff]"), "Bengali"),
  (re.compile("[\u0b80-\u0bff]"), "Tamil"),
  (re.compile("[\u0c00-\u0c7f]"), "Telugu"),
  (re.compile("[\u0c80-\u0cff]"), "Kannada"),
  (re.compile("[\u0d00-\u0d7f]"), "Malayalam"),
  (re.compile("[\u0600-\u06ff]"), "Urdu (Arabic)"),
)

DEFAULT_LANGUAGE = "English"


@dataclass(frozen=True)
class AdmissionResult:
  """Outcome of admission control; `error` and `stage` are set only on rejection."""

  is_valid: bool
  error: str | None = None
  stage: str | None = None


def _reject(stage: str, error: str) -> AdmissionResult:
  return AdmissionResult(is_valid=False, error=error, stage=stage)


def _is_spam(text: str) -> bool:
  if _ONLY_SPECIAL_CHARS.fullmatch(text):
    return True
  return any(pattern.search(text) for pattern in _SPAM_PATTERNS)


def _has_substantive_content(text: str) -> bool:
  """Allow topic-like requests that carry no explicit lesson keyword."""
  if _PROPER_NOUN.search(text) or _DIGIT.search(text):
    return True
  if len(text.split()) >= 4:
    return True
  return _NON_LATIN_SCRIPT.search(text) is not None


def _has_gibberish(text: str) -> bool:
  for word in text.split():
    if len(word) < 4:
      continue
    if _CONSONANT_RUN.search(word) or _VOWEL_RUN.search(word):
      return True
  return False


def check(text: object) -> AdmissionResult:
  """Decide whether a free-form request may enter the generation pipeline."""
  if not isinstance(text, str) or not text:
    return _reject("length", "Please enter a valid prompt")

  trimmed = text.strip()
  if len(trimmed) < _MIN_LENGTH:
    return _reject("length", f"Please enter a more detailed prompt (at least {_MIN_LENGTH} characters)")

  if len(trimmed) > _MAX_LENGTH:
    return _reject("length", f"Prompt is too long (maximum {_MAX_LENGTH} characters)")

  if _INVISIBLE_CHARS.search(trimmed):
    return _reject("invisible_characters", "Prompt contains invisible characters. Please use normal text.")

  if len(_EMOJI.findall(trimmed)) > _MAX_EMOJIS:
    return _reject("emoji", "Too many emojis in prompt. Please use more descriptive text.")

  if _is_spam(trimmed):
    return _reject("spam", "Please enter a valid lesson-related prompt")

  if any(pattern.search(trimmed) for pattern in _SQL_PATTERNS):
    return _reject("sql_injection", "Invalid characters or patterns detected in prompt")

  if any(pattern.search(trimmed) for pattern in _INJECTION_PATTERNS):
    return _reject("prompt_injection", "Invalid prompt format detected")

  if any(pattern.search(trimmed) for pattern in _OFFENSIVE_PATTERNS):
    return _reject("offensive", "Please enter appropriate, educational content only")

  has_keyword = any(pattern.search(trimmed) for pattern in _EDUCATIONAL_KEYWORDS)
  if not has_keyword and not _has_substantive_content(trimmed):
    return _reject("educational_intent", "Please enter a valid prompt related to lessons, education, or learning topics")

  # Consonant and vowel runs only make sense for Latin text.
  if _NON_LATIN_SCRIPT.search(trimmed) is None and _has_gibberish(trimmed):
    return _reject("gibberish", "Please enter a valid prompt with real words")

  return AdmissionResult(is_valid=True)


def prompt_suggestion(text: str) -> str:
  """Return a corrective hint to show next to an admission rejection."""
  trimmed = (text or "").strip()
  if len(trimmed) < _MIN_LENGTH:
    return "Try something like: 'Interactive lesson explaining how photosynthesis works' or 'Quiz on World War 2 history'"

  if not _LESSON_VERB.search(trimmed):
    return "Start your prompt with phrases like: 'Create a lesson about...', 'Quiz on...', 'Explain...', or 'Interactive tutorial on...'"

  return "Make sure your prompt describes an educational topic, subject, or learning activity"


def detect_language_script(text: str) -> str:
  """Name the writing system of a request so content can be produced in it."""
  for pattern, name in _SCRIPT_NAMES:
    if pattern.search(text):
      return name
  return DEFAULT_LANGUAGE
