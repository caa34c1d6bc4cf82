"""Prompt templates shared by every provider client.

The product serves Turkish-speaking staff, so prompts and canned answers are
in Turkish.
"""

from __future__ import annotations

from decision_assistant.models import MeetingRef
from decision_assistant.retrieval.ranking import build_context, format_meeting_date

MAX_BATCH_TASKS = 8

NO_ANSWER = "Üzgünüm, cevap oluşturamadım."
NO_MEETINGS_ANSWER = "Henüz hiç toplantı kaydı bulunmuyor. Lütfen önce bazı toplantı notları ekleyin."
TEST_PROMPT = "Test mesajı: Merhaba, çalışıyor musun?"

QA_SYSTEM_PROMPT = (
    "Sen bir toplantı yönetim sistemi asistanısın. Kullanıcıların sorularını geçmiş "
    "toplantı kararlarına dayanarak cevaplayacaksın.\n\n"
    "Görevlerin:\n"
    "1. Soruyu analiz et ve en uygun toplantı kararlarını bul\n"
    "2. Karar tarihlerini mutlaka belirt\n"
    "3. Eğer aynı konuda birden fazla karar varsa, kronolojik sırayla göster\n"
    "4. Revizyon varsa \"Bu karar [tarih]'te alınmış, ancak [tarih]'te şöyle revize "
    "edilmiştir\" şeklinde belirt\n"
    "5. Türkçe, net ve anlaşılır bir dilde cevapla\n"
    "6. Eğer soruya kesin bir cevap bulamıyorsan, buna yakın konulardaki kararları öner\n\n"
    "Örnek cevap formatı:\n"
    "\"[Tarih] tarihli toplantıda '[karar]' kararı alınmıştır. Bu karar [sonraki tarih] "
    "tarihinde '[yeni karar]' şeklinde güncellenmiştir.\""
)

ANALYSIS_SYSTEM_PROMPT = (
    "Sen toplantı notlarından görev çıkaran bir asistansın. "
    "Sadece JSON formatında cevap ver, başka açıklama ekleme."
)


def question_prompt(question: str, meetings: list[MeetingRef]) -> str:
    """User message for Q&A: ranked meeting context followed by the question."""
    return f"Toplantı Kayıtları:\n{build_context(meetings)}\n\nSorum: {question}"


def analysis_prompt(meeting: MeetingRef) -> str:
    """Ask for the important tasks of a single meeting as JSON."""
    lines = [
        "Bu toplantı notunu analiz et ve önemli, acil veya unutulmaması gereken görevleri çıkar:",
        "",
        "Toplantı Bilgileri:",
        f"Tarih: {format_meeting_date(meeting.date)}",
        f"Konu: {meeting.topic}",
        f"Karar: {meeting.decision_text}",
    ]
    if meeting.notes:
        lines.append(f"Notlar: {meeting.notes}")
    if meeting.tags:
        lines.append(f"Etiketler: {meeting.tags}")
    lines += [
        "",
        "Görevlerin:",
        "1. Bu toplantıdan çıkan önemli görevleri belirle",
        "2. Acil olan görevleri işaretle",
        "3. Unutulmaması gereken önemli noktaları belirle",
        "4. Her görev için önem derecesi ver (yüksek/orta/düşük)",
        "5. Mümkünse tarih bilgisi varsa deadline belirle",
        "",
        "Cevabını şu JSON formatında ver:",
        "{",
        '  "hasImportantTasks": true/false,',
        '  "tasks": [',
        "    {",
        '      "title": "Görev başlığı",',
        '      "description": "Görev açıklaması",',
        '      "priority": "high/medium/low",',
        '      "isUrgent": true/false,',
        '      "deadline": "YYYY-MM-DD" veya null,',
        '      "category": "action/reminder/deadline"',
        "    }",
        "  ],",
        '  "summary": "Toplantının genel özeti"',
        "}",
        "",
        "Sadece JSON formatında cevap ver, başka açıklama ekleme.",
    ]
    return "\n".join(lines)


def important_tasks_prompt(meetings: list[MeetingRef]) -> str:
    """Ask for at most eight critical tasks across many meetings as JSON."""
    return f"""Toplantı kayıtlarını analiz et ve SADECE önemli, kritik ve unutulursa problem yaratacak görevleri çıkar:

Toplantı Kayıtları:
{build_context(meetings)}

ÖNEMLİ TALİMATLAR:
1. SADECE şu kriterleri karşılayan görevleri çıkar:
   - Eğer unutulursa ciddi problem yaratacak görevler
   - Belirli bir tarih/deadline'ı olan görevler
   - Takip edilmesi gereken süreçler
   - Yapılması zorunlu olan işlemler
   - Önemli kişilerle iletişim gerektiren durumlar

2. ÇIKARMA:
   - Genel bilgilendirmeler
   - Rutin işlemler
   - Belirsiz ifadeler
   - "dikkat edilecek", "önemli" gibi genel tavsiyeler

3. Her görev için:
   - Kısa ve net başlık (maksimum 50 karakter)
   - Spesifik açıklama
   - Gerçekçi öncelik değerlendirmesi
   - Varsa tarih bilgisini deadline olarak belirle

4. En fazla {MAX_BATCH_TASKS} kritik görev seç
5. Görevleri önem sırasına göre sırala

Cevabını şu JSON formatında ver:
{{
  "tasks": [
    {{
      "title": "Kısa görev başlığı",
      "description": "Spesifik görev açıklaması",
      "priority": "high/medium/low",
      "isUrgent": true/false,
      "deadline": "YYYY-MM-DD" veya null,
      "category": "action/reminder/deadline",
      "meetingDate": "YYYY-MM-DD",
      "meetingTopic": "Toplantı konusu"
    }}
  ],
  "totalMeetings": {len(meetings)},
  "summary": "Çıkarılan kritik görev sayısı ve genel durum"
}}

Sadece JSON formatında cevap ver, başka açıklama ekleme."""
