"""
AI Matching for HireMatch

This app scores candidates against categorized job requirements, including:
- Profile, requirement and skill embeddings via OpenAI
- Weighted MUST / SHOULD / NICE fit scores with strengths and gaps
- Candidate discovery through embedding similarity
- Human-readable match explanations
- Asynchronous fit-score jobs with retries and a bounded job history
"""
