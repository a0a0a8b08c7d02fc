"""Scenario catalog and resolution of a learner's scenario choice."""
from typing import Optional

from fluentdrama.models.character import Audience
from fluentdrama.models.scenario import PresetScenario, ScenarioDescriptor


def _scene(key: str, situation: str, user_role: str, character_role: str,
           objective: str, *expressions: str) -> ScenarioDescriptor:
    return ScenarioDescriptor(
        key=key,
        situation=situation,
        user_role=user_role,
        character_role=character_role,
        objective=objective,
        sample_expressions=expressions,
    )


CATALOG: dict[str, ScenarioDescriptor] = {
    scene.key: scene
    for scene in (
        # Scene presets
        _scene(
            "restaurant",
            "You're at an upscale restaurant",
            "Customer",
            "Restaurant Staff",
            "Have a natural dining experience",
        ),
        _scene(
            "airport",
            "You're checking in for an international business class flight",
            "Business Traveler",
            "Flight Attendant",
            "Complete check-in and receive premium service guidance",
            "Welcome aboard, may I see your boarding pass?",
            "Would you like champagne or orange juice?",
            "Our meal service begins shortly",
            "Please let me know if you need anything",
        ),
        _scene(
            "coffee_shop",
            "You're at a trendy local coffee shop meeting a friend",
            "Customer",
            "Friendly Barista",
            "Order specialty coffee and engage in casual conversation",
            "Hey there! What can I craft for you today?",
            "That's our signature blend",
            "Would you like to try our new seasonal latte?",
            "Are you meeting someone special today?",
        ),
        _scene(
            "business_meeting",
            "You're in a corporate meeting discussing a new project",
            "Project Manager",
            "Senior Executive",
            "Present ideas professionally and negotiate terms",
            "Thank you for joining today's meeting",
            "What's your take on the market analysis?",
            "I'd like to propose an alternative approach",
            "When can we expect the deliverables?",
        ),
        _scene(
            "hotel",
            "You're checking into a luxury hotel",
            "Hotel Guest",
            "Concierge",
            "Get personalized recommendations and luxury service",
            "Welcome to our hotel, how was your journey?",
            "I'd be happy to arrange restaurant reservations",
            "Our spa services are highly recommended",
            "Is there anything special we can arrange for your stay?",
        ),
        # Student presets
        _scene(
            "cafeteria",
            "You're in the school cafeteria ordering lunch",
            "Student",
            "Cafeteria Staff",
            "Order lunch and practice casual conversation",
            "What would you like for lunch today?",
            "Would you like fries with that?",
            "Here's your meal, enjoy!",
            "Have a great day!",
        ),
        _scene(
            "club",
            "You're joining a school club activity",
            "New Member",
            "Club Leader",
            "Introduce yourself and learn about club activities",
            "Welcome to our club!",
            "What are you interested in?",
            "We meet every Tuesday",
            "Looking forward to working with you!",
        ),
        _scene(
            "homework",
            "You're stuck on an assignment and asking a classmate for help",
            "Student",
            "Classmate",
            "Explain what you don't understand and ask for help politely",
            "宿題はもう終わりましたか？",
            "この問題がわかりません",
            "手伝ってもらえますか？",
        ),
        _scene(
            "school_trip",
            "You're planning the upcoming school trip with a friend",
            "Student",
            "Trip Partner",
            "Decide where to go and talk about preparations",
            "どこに行くか決めましたか？",
            "楽しみですね",
            "準備はできていますか？",
        ),
        _scene(
            "new_friend",
            "It's your first day in a new class",
            "New Student",
            "Classmate",
            "Introduce yourself and make a new friend",
            "はじめまして",
            "お名前を教えてください",
            "よろしくお願いします",
        ),
        _scene(
            "confidence_talk",
            "You're practicing speaking up with an encouraging senior student",
            "Student",
            "Supportive Senpai",
            "Overcome shyness and share your opinion out loud",
            "頑張ってください",
            "大丈夫ですよ",
            "練習しましょう",
        ),
        # General presets
        _scene(
            "travel",
            "You're traveling in Japan and need help at a station",
            "Traveler",
            "Station Staff",
            "Book a ticket and ask for directions",
            "どちらまで行かれますか？",
            "チケットを予約したいです",
            "道を教えてください",
        ),
        _scene(
            "cafe_order",
            "You're ordering at a neighborhood café",
            "Customer",
            "Café Staff",
            "Order a drink and make small talk",
            "何をお飲みになりますか？",
            "おすすめはありますか？",
            "テイクアウトでお願いします",
        ),
        _scene(
            "job_interview",
            "You're at an entry-level job interview",
            "Applicant",
            "Interviewer",
            "Introduce yourself and answer basic interview questions",
            "自己紹介をお願いします",
            "なぜ当社を志望されましたか？",
            "質問はございますか？",
        ),
        _scene(
            "roommate_chat",
            "You're chatting with your roommate in the evening",
            "Roommate",
            "Roommate",
            "Talk about your day and plan dinner together",
            "今日はどうでしたか？",
            "一緒に料理しませんか？",
            "お疲れ様でした",
        ),
        _scene(
            "hobby_club",
            "You're visiting a hobby club for the first time",
            "Visitor",
            "Club Member",
            "Talk about your interests and join an activity",
            "趣味は何ですか？",
            "一緒にやりませんか？",
            "いつ始めましたか？",
        ),
        _scene(
            "presentation_basics",
            "You're rehearsing a short presentation with a coach",
            "Presenter",
            "Presentation Coach",
            "Give a simple presentation and answer questions",
            "今日は発表の練習をしましょう",
            "準備はできていますか？",
            "質問に答えてみてください",
        ),
        # Business presets
        _scene(
            "email_etiquette",
            "You're going over a business email with your manager",
            "Employee",
            "Manager",
            "Confirm and reply to a business email politely",
            "お疲れ様です",
            "メールを確認しました",
            "返信いたします",
        ),
        _scene(
            "meeting_opener",
            "You're opening a meeting with a new business partner",
            "Meeting Host",
            "Business Partner",
            "Open the meeting and introduce the agenda",
            "会議を始めさせていただきます",
            "今日の議題は...",
            "ご質問はございますか？",
        ),
        _scene(
            "negotiation_basics",
            "You're negotiating contract terms with a supplier",
            "Buyer",
            "Supplier Representative",
            "Discuss conditions and reach an agreement",
            "条件について話し合いましょう",
            "予算はどのくらいですか？",
            "ご検討いただけますか？",
        ),
        _scene(
            "small_talk",
            "You're at a networking reception",
            "Professional",
            "Industry Contact",
            "Make professional small talk and exchange contacts",
            "いつもお世話になっております",
            "お忙しい中ありがとうございます",
            "最近はいかがですか？",
        ),
        _scene(
            "deadline_followup",
            "You're following up on a project deadline",
            "Project Lead",
            "Team Member",
            "Check progress and agree on a realistic deadline",
            "締切はいつでしょうか？",
            "進捗状況を教えてください",
            "時間が足りません",
        ),
        _scene(
            "presentation_qa",
            "You've just finished a presentation and questions are coming in",
            "Presenter",
            "Audience Member",
            "Answer questions clearly and politely",
            "ご質問はございますか？",
            "ご説明いたします",
            "ありがとうございました",
        ),
    )
}

PRESETS: tuple[PresetScenario, ...] = tuple(
    PresetScenario(key=key, title=title, description=description, audience=audience)
    for audience, entries in (
        (Audience.student, (
            ("cafeteria", "School Cafeteria", "Ordering lunch and chatting with friends in Japanese"),
            ("club", "Club Activity", "Joining and participating in school clubs in Japanese"),
            ("homework", "Homework Help", "Getting help with assignments in Japanese"),
            ("school_trip", "School Trip", "Planning and discussing field trips in Japanese"),
            ("new_friend", "Making New Friends", "Introducing yourself to new classmates in Japanese"),
            ("confidence_talk", "Confidence Building", "Overcoming shyness and speaking up in Japanese"),
        )),
        (Audience.general, (
            ("travel", "Travel Conversations", "Booking hotels and asking for directions in Japanese"),
            ("cafe_order", "Café Orders", "Ordering coffee and casual conversations in Japanese"),
            ("job_interview", "Job Interview (Basic)", "Entry-level interview preparation in Japanese"),
            ("roommate_chat", "Roommate Chat", "Daily conversations with roommates in Japanese"),
            ("hobby_club", "Hobby Club", "Discussing interests and joining activities in Japanese"),
            ("presentation_basics", "Presentation Basics", "Simple presentations and Q&A in Japanese"),
        )),
        (Audience.business, (
            ("email_etiquette", "Email Etiquette", "Professional email communication in Japanese"),
            ("meeting_opener", "Meeting Openers", "Starting meetings and introductions in Japanese"),
            ("negotiation_basics", "Negotiation Basics", "Basic negotiation techniques in Japanese"),
            ("small_talk", "Professional Small Talk", "Networking and casual conversations in Japanese"),
            ("deadline_followup", "Deadline Follow-up", "Managing deadlines and project updates in Japanese"),
            ("presentation_qa", "Presentation Q&A", "Handling questions after presentations in Japanese"),
        )),
    )
    for key, title, description in entries
)

GENERIC_SCENARIO = ScenarioDescriptor(
    situation="General Japanese conversation practice",
    user_role="Learner",
    character_role="Japanese Tutor",
    objective="Practice natural Japanese conversation",
)

CUSTOM_OBJECTIVE = "Practice Japanese conversation in this custom scenario"


class ScenarioResolver:
    """Maps a preset key or free text to a scenario descriptor. Never fails."""

    def __init__(self, catalog: Optional[dict[str, ScenarioDescriptor]] = None) -> None:
        self.catalog = CATALOG if catalog is None else catalog

    def resolve(
        self, preset_key: Optional[str] = None, free_text: Optional[str] = None
    ) -> ScenarioDescriptor:
        if preset_key and preset_key in self.catalog:
            return self.catalog[preset_key]
        text = (free_text or "").strip()
        if text:
            return ScenarioDescriptor(
                situation=text,
                user_role="User",
                character_role="AI Tutor",
                objective=CUSTOM_OBJECTIVE,
            )
        return GENERIC_SCENARIO

    def list_presets(self, audience: Optional[Audience] = None) -> list[PresetScenario]:
        return [p for p in PRESETS if audience is None or p.audience == audience]
