"""Per-language phrase tables for anchors and link titles.

Pure data: language -> anchor type -> templates. `{text}` is replaced by
the base text (target title, service name); generic templates ignore it.
Adding a language means adding one entry to each table below.
"""

ANCHOR_TEMPLATES: dict[str, dict[str, list[str]]] = {
    "fr": {
        "long_tail": [
            "tout savoir sur {text}",
            "guide complet sur {text}",
            "découvrir {text}",
            "comprendre {text}",
        ],
        "cta": [
            "consultez notre guide sur {text}",
            "en savoir plus sur {text}",
            "découvrez {text}",
        ],
        "generic": ["en savoir plus", "cliquez ici", "voir plus", "lire la suite"],
        "question": [
            "comment {text} ?",
            "qu'est-ce que {text} ?",
            "pourquoi {text} ?",
        ],
    },
    "en": {
        "long_tail": [
            "everything about {text}",
            "complete guide to {text}",
            "learn about {text}",
            "understanding {text}",
        ],
        "cta": [
            "check our guide on {text}",
            "learn more about {text}",
            "discover {text}",
        ],
        "generic": ["learn more", "click here", "read more", "find out more"],
        "question": ["how to {text}?", "what is {text}?", "why {text}?"],
    },
    "es": {
        "long_tail": ["todo sobre {text}", "guía completa de {text}", "descubrir {text}"],
        "cta": [
            "consulte nuestra guía sobre {text}",
            "más información sobre {text}",
            "descubra {text}",
        ],
        "generic": ["más información", "haga clic aquí", "leer más"],
        "question": ["¿cómo {text}?", "¿qué es {text}?", "¿por qué {text}?"],
    },
    "de": {
        "long_tail": [
            "alles über {text}",
            "vollständiger Leitfaden zu {text}",
            "{text} verstehen",
        ],
        "cta": [
            "lesen Sie unseren Leitfaden zu {text}",
            "mehr erfahren über {text}",
            "entdecken Sie {text}",
        ],
        "generic": ["mehr erfahren", "hier klicken", "weiterlesen"],
        "question": ["wie {text}?", "was ist {text}?", "warum {text}?"],
    },
    "pt": {
        "long_tail": ["tudo sobre {text}", "guia completo de {text}", "descobrir {text}"],
        "cta": [
            "consulte nosso guia sobre {text}",
            "saiba mais sobre {text}",
            "descubra {text}",
        ],
        "generic": ["saiba mais", "clique aqui", "leia mais"],
        "question": ["como {text}?", "o que é {text}?", "por que {text}?"],
    },
    "ru": {
        "long_tail": [
            "всё о {text}",
            "полное руководство по {text}",
            "узнать о {text}",
        ],
        "cta": [
            "ознакомьтесь с нашим руководством по {text}",
            "узнать больше о {text}",
            "откройте для себя {text}",
        ],
        "generic": ["узнать больше", "нажмите здесь", "читать далее"],
        "question": ["как {text}?", "что такое {text}?", "почему {text}?"],
    },
    "zh": {
        "long_tail": ["关于{text}的一切", "{text}完整指南", "了解{text}"],
        "cta": ["查看我们的{text}指南", "了解更多关于{text}", "探索{text}"],
        "generic": ["了解更多", "点击这里", "阅读更多"],
        "question": ["如何{text}？", "什么是{text}？", "为什么{text}？"],
    },
    "ar": {
        "long_tail": ["كل شيء عن {text}", "دليل شامل عن {text}", "اكتشف {text}"],
        "cta": ["راجع دليلنا حول {text}", "اعرف المزيد عن {text}", "اكتشف {text}"],
        "generic": ["اعرف المزيد", "انقر هنا", "اقرأ المزيد"],
        "question": ["كيف {text}?", "ما هو {text}?", "لماذا {text}?"],
    },
    "hi": {
        "long_tail": [
            "{text} के बारे में सब कुछ",
            "{text} की पूरी गाइड",
            "{text} जानें",
        ],
        "cta": [
            "{text} पर हमारी गाइड देखें",
            "{text} के बारे में और जानें",
            "{text} खोजें",
        ],
        "generic": ["और जानें", "यहां क्लिक करें", "और पढ़ें"],
        "question": ["{text} कैसे करें?", "{text} क्या है?", "{text} क्यों?"],
    },
}

EXTERNAL_TITLE_TEMPLATES: dict[str, str] = {
    "fr": "Visiter {domain}",
    "en": "Visit {domain}",
    "es": "Visitar {domain}",
    "de": "Besuchen Sie {domain}",
    "pt": "Visitar {domain}",
    "ru": "Посетить {domain}",
    "zh": "访问 {domain}",
    "ar": "زيارة {domain}",
    "hi": "{domain} पर जाएं",
}

OFFICIAL_SOURCE_LABELS: dict[str, list[str]] = {
    "fr": ["site officiel", "source officielle", "consulter le site"],
    "en": ["official website", "official source", "visit site"],
    "es": ["sitio oficial", "fuente oficial", "visitar sitio"],
    "de": ["offizielle Website", "offizielle Quelle", "Website besuchen"],
    "pt": ["site oficial", "fonte oficial", "visitar site"],
    "ru": ["официальный сайт", "официальный источник", "посетить сайт"],
    "zh": ["官方网站", "官方来源", "访问网站"],
    "ar": ["الموقع الرسمي", "المصدر الرسمي", "زيارة الموقع"],
    "hi": ["आधिकारिक वेबसाइट", "आधिकारिक स्रोत", "साइट देखें"],
}

LANGUAGE_NAMES: dict[str, str] = {
    "fr": "Français",
    "en": "English",
    "es": "Español",
    "de": "Deutsch",
    "pt": "Português",
    "ru": "Русский",
    "zh": "中文",
    "ar": "العربية",
    "hi": "हिन्दी",
}

# Stopwords used to tell Latin-script languages apart
LATIN_STOPWORDS: dict[str, frozenset[str]] = {
    "fr": frozenset(
        "le la les de du des est sont pour dans avec une un et au aux sur que qui pas".split()
    ),
    "en": frozenset(
        "the is are for and with this that from have was were be of to in it you".split()
    ),
    "es": frozenset(
        "el la los las de del es son para con una un y en por que se como".split()
    ),
    "de": frozenset(
        "der die das und ist sind für mit von auf ein eine nicht zu den dem im".split()
    ),
    "pt": frozenset(
        "o a os as de do da é são para com um uma em no na não que dos".split()
    ),
}

# (thousands separator, decimal separator, grouping style)
NUMBER_FORMATS: dict[str, tuple[str, str, str]] = {
    "fr": (" ", ",", "western"),
    "ru": (" ", ",", "western"),
    "de": (".", ",", "western"),
    "es": (".", ",", "western"),
    "pt": (".", ",", "western"),
    "en": (",", ".", "western"),
    "zh": (",", ".", "western"),
    "ar": (",", ".", "western"),
    "hi": (",", ".", "indian"),
}
