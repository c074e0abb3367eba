from diagnosis_backend.asr.models import OptimizedSegment, Utterance


def utt(speaker: str, start_ms: int, end_ms: int, confidence: float = 0.9, text: str = "some spoken words") -> Utterance:
    return Utterance(speaker=speaker, text=text, start_ms=start_ms, end_ms=end_ms, confidence=confidence)


def seg(speaker: str, start_ms: int, end_ms: int, confidence: float = 0.9, text: str = "some spoken words") -> OptimizedSegment:
    return OptimizedSegment(speaker=speaker, text=text, start_ms=start_ms, end_ms=end_ms, confidence=confidence)
