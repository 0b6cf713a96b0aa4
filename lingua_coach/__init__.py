"""
Lingua Coach Application

A speaking-practice tool for English learners featuring:
- Practice mode: record speech, get scored feedback with corrections
- Conversation mode: talk with an AI partner that corrects you as it replies
- Speech-to-text, language model and text-to-speech through an AI provider
"""

__version__ = "0.1.0"
__app_name__ = "lingua-coach"
