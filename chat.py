import logging
import re
from typing import Dict, List, Optional, Sequence

from config import Settings
from errors import UpstreamError

logger = logging.getLogger(__name__)

# Language utilities
SUPPORTED_LANGS = {
    "en": "English",
    "hi": "हिन्दी",
    "te": "తెలుగు",
    "ta": "தமிழ்",
    "ml": "മലയാളം",
}


def ensure_lang(lang: Optional[str]) -> str:
    if not lang:
        return "en"
    lang = lang.lower()
    return lang if lang in SUPPORTED_LANGS else "en"


SYSTEM_PROMPTS = {
    "en": (
        "You are KrishiSahay, an AI assistant specialized in agriculture. You help farmers with:\n"
        "- Crop cultivation advice\n"
        "- Pest and disease management\n"
        "- Weather and climate information\n"
        "- Soil health and fertilizer recommendations\n"
        "- Modern farming techniques\n"
        "- Market prices and trends\n"
        "- Sustainable farming practices\n"
        "\n"
        "Provide helpful, practical advice in English. If you don't know something, "
        "admit it and suggest consulting local agricultural experts."
    ),
    "hi": (
        "आप कृषिसहाय हैं, कृषि में विशेषज्ञता रखने वाला एक AI सहायक हैं। आप किसानों की मदद करते हैं:\n"
        "- फसल उगाने की सलाह\n"
        "- कीट और रोग प्रबंधन\n"
        "- मौसम और जलवायु जानकारी\n"
        "- मृदा स्वास्थ्य और उर्वरक सिफारिशें\n"
        "- आधुनिक खेती तकनीक\n"
        "- बाजार मूल्य और रुझान\n"
        "- टिकाऊ खेती प्रथाएं\n"
        "\n"
        "कृपया हिंदी में उपयोगी, व्यावहारिक सलाह प्रदान करें। यदि आप कुछ नहीं जानते, "
        "तो स्वीकार करें और स्थानीय कृषि विशेषज्ञों से परामर्श करने का सुझाव दें।"
    ),
    "te": (
        "మీరు కృషిసహాయ, వ్యవసాయంలో నైపుణ్యం కలిగిన AI సహాయకుడు. మీరు రైతులకు సహాయం చేస్తారు:\n"
        "- పంటల సాగు సలహాలు\n"
        "- పురుగులు మరియు వ్యాధుల నిర్వహణ\n"
        "- వాతావరణం మరియు వాతావరణ సమాచారం\n"
        "- నేల ఆరోగ్యం మరియు ఎరువుల సిఫార్సులు\n"
        "- ఆధునిక వ్యవసాయ పద్ధతులు\n"
        "- మార్కెట్ ధరలు మరియు ధోరణులు\n"
        "- స్థిరమైన వ్యవసాయ పద్ధతులు\n"
        "\n"
        "దయచేసి తెలుగులో ఉపయోగకరమైన, ప్రాయోగిక సలహాలు అందించండి. మీకు ఏమీ తెలియకపోతే, "
        "అది ఒప్పుకుని స్థానిక వ్యవసాయ నిపుణులను సంప్రదించమని సూచించండి."
    ),
    "ta": (
        "நீங்கள் கிருஷிசஹாய், வேளாண்மையில் நிபுணத்துவம் கொண்ட ஒரு AI உதவியாளர். நீங்கள் விவசாயிகளுக்கு உதவுகிறீர்கள்:\n"
        "- பயிர் பயிரிடும் ஆலோசனை\n"
        "- பூச்சிகள் மற்றும் நோய்கள் மேலாண்மை\n"
        "- வானிலை மற்றும் காலநிலை தகவல்\n"
        "- மண் ஆரோக்கியம் மற்றும் உரப் பரிந்துரைகள்\n"
        "- நவீன வேளாண்மை நுட்பங்கள்\n"
        "- சந்தை விலைகள் மற்றும் போக்குகள்\n"
        "- நிலையான வேளாண்மை நடைமுறைகள்\n"
        "\n"
        "தயவுசெய்து தமிழில் பயனுள்ள, நடைமுறை ஆலோசனைகளை வழங்கவும். உங்களுக்கு ஏதும் தெரியாவிட்டால், "
        "ஒப்புக்கொண்டு உள்ளூர் வேளாண்மை நிபுணர்களை அணுகுமாறு பரிந்துரைக்கவும்."
    ),
    "ml": (
        "നിങ്ങൾ കൃഷിസഹായ, കൃഷിയിൽ വൈദഗ്ധ്യമുള്ള ഒരു AI സഹായി. നിങ്ങൾ കർഷകർക്ക് സഹായം ചെയ്യുന്നു:\n"
        "- വിള കൃഷി ഉപദേശം\n"
        "- കീടങ്ങളും രോഗങ്ങളും നിയന്ത്രണം\n"
        "- കാലാവസ്ഥയും കാലാവസ്ഥാ വിവരങ്ങളും\n"
        "- മണ്ണിന്റെ ആരോഗ്യവും വളപ്പെടുത്തൽ ശുപാർശകളും\n"
        "- ആധുനിക കൃഷി രീതികൾ\n"
        "- വിപണി വിലകളും ട്രെൻഡുകളും\n"
        "- നിലവിലായ കൃഷി രീതികൾ\n"
        "\n"
        "ദയവായി മലയാളത്തിൽ ഉപകാരപ്രദമായ, പ്രായോഗിക ഉപദേശങ്ങൾ നൽകുക. നിങ്ങൾക്ക് ഒന്നും അറിയില്ലെങ്കിൽ, "
        "അത് സമ്മതിച്ച് പ്രാദേശിക കാർഷിക വിദഗ്ധരെ സമീപിക്കാൻ നിർദ്ദേശിക്കുക."
    ),
}


def system_prompt(lang: str) -> str:
    return SYSTEM_PROMPTS.get(lang, SYSTEM_PROMPTS["en"])


# Rule-based responses used when no provider is configured or the provider fails.
# Only English has the full set; anything missing falls back to English.
FALLBACK_RESPONSES = {
    "en": {
        "greeting": "Hello! I'm KrishiSahay, your AI agricultural assistant. How can I help you with your farming needs today?",
        "rice": "For rice cultivation, I recommend: 1) Use high-quality seeds, 2) Maintain proper water levels (2-3 inches), 3) Apply balanced fertilizer (NPK 4:2:1), 4) Monitor for pests like brown planthopper. What specific aspect of rice farming would you like to know more about?",
        "wheat": "For wheat farming: 1) Sow in November-December, 2) Use seed rate of 100kg/acre, 3) Apply DAP fertilizer at sowing, 4) Irrigate at crown root initiation and flowering stages. Need more specific advice?",
        "pests": "Common pests include aphids, whiteflies, and mites. I recommend: 1) Use neem oil spray, 2) Introduce ladybugs, 3) Remove infected plants, 4) Maintain proper spacing. Which pest are you dealing with?",
        "weather": "Based on current weather patterns, consider: 1) Delay sowing if heavy rains expected, 2) Use drought-resistant varieties in dry areas, 3) Plan irrigation around monsoon schedule. What's your location?",
        "default": "I can help you with crop selection, pest management, irrigation techniques, fertilizer recommendations, weather-based farming advice, and market information. Please specify your farming question or concern.",
    },
    "hi": {
        "greeting": "नमस्ते! मैं कृषिसहाय हूं, आपका AI कृषि सहायक। आज मैं आपकी कृषि जरूरतों में कैसे मदद कर सकता हूं?",
        "rice": "धान की खेती के लिए: 1) उच्च गुणवत्ता वाले बीज उपयोग करें, 2) उचित जल स्तर (2-3 इंच) बनाए रखें, 3) संतुलित उर्वरक (NPK 4:2:1) उपयोग करें, 4) भूरा फुदका जैसे कीटों पर नजर रखें। धान की खेती के किस पहलू पर अधिक जानकारी चाहिए?",
        "wheat": "गेहूं की खेती के लिए: 1) नवंबर-दिसंबर में बोएं, 2) 100kg/एकड़ की बीज दर उपयोग करें, 3) बोने के समय DAP उर्वरक लगाएं, 4) क्राउन रूट और फूल आने के चरणों में सिंचाई करें। और विशिष्ट सलाह चाहिए?",
        "default": "मैं आपकी फसल चयन, कीट प्रबंधन, सिंचाई तकनीक, उर्वरक सिफारिश, मौसम-आधारित कृषि सलाह, और बाजार जानकारी में मदद कर सकता हूं। कृपया अपना कृषि प्रश्न या चिंता बताएं।",
    },
}

# (topic, patterns) checked in order; first hit wins
FALLBACK_KEYWORDS = [
    ("greeting", [r"hello", r"\bhi\b", r"नमस्ते"]),
    ("rice", [r"rice", r"धान"]),
    ("wheat", [r"wheat", r"गेहूं"]),
    ("pests", [r"pest", r"कीट"]),
    ("weather", [r"weather", r"मौसम"]),
]


def fallback_response(message: str, lang: str) -> str:
    lowered = message.lower()
    topic = "default"
    for key, patterns in FALLBACK_KEYWORDS:
        if any(re.search(p, lowered) for p in patterns):
            topic = key
            break
    localized = FALLBACK_RESPONSES.get(lang, {})
    return localized.get(topic) or FALLBACK_RESPONSES["en"][topic]


class CompletionProvider:
    """Chat-completions client shared by the OpenAI-compatible SDKs."""

    name = "provider"

    def __init__(self, client, model: str, temperature: float = 0.7, max_tokens: int = 1024):
        self.client = client
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    def complete(self, messages: List[Dict[str, str]]) -> str:
        completion = self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        content = completion.choices[0].message.content if completion.choices else None
        if not content or not content.strip():
            raise UpstreamError(f"{self.name} returned an empty completion")
        return content.strip()


class GroqProvider(CompletionProvider):
    name = "groq"

    @classmethod
    def from_key(cls, api_key: str, model: str) -> "GroqProvider":
        from groq import Groq
        return cls(Groq(api_key=api_key), model)


class OpenAIProvider(CompletionProvider):
    name = "openai"

    @classmethod
    def from_key(cls, api_key: str, model: str) -> "OpenAIProvider":
        from openai import OpenAI
        return cls(OpenAI(api_key=api_key), model, max_tokens=1000)


def select_provider(settings: Settings) -> Optional[CompletionProvider]:
    # Groq wins when both keys are present
    if settings.groq_api_key:
        return GroqProvider.from_key(settings.groq_api_key, settings.groq_model)
    if settings.openai_api_key:
        return OpenAIProvider.from_key(settings.openai_api_key, settings.openai_model)
    return None


class ChatService:
    def __init__(self, provider: Optional[CompletionProvider] = None):
        self.provider = provider

    def build_messages(self, message: str, history: Sequence[Dict[str, str]], lang: str) -> List[Dict[str, str]]:
        messages = [{"role": "system", "content": system_prompt(lang)}]
        messages.extend({"role": turn["role"], "content": turn["content"]} for turn in history)
        messages.append({"role": "user", "content": message})
        return messages

    def reply(self, message: str, history: Sequence[Dict[str, str]], lang: str) -> str:
        if self.provider is not None:
            try:
                return self.provider.complete(self.build_messages(message, history, lang))
            except Exception as e:
                err = e if isinstance(e, UpstreamError) else UpstreamError(str(e))
                logger.error("Chat provider %s failed, using rule-based reply: %s", self.provider.name, err.message)
        return fallback_response(message, lang)
