from tasmee.config import WORD_MATCH_THRESHOLD
from tasmee.similarity import tokens_match


def lcs(
    transcribed: list[str],
    window: list[str],
    threshold: float = WORD_MATCH_THRESHOLD,
) -> list[str]:
    """Longest common subsequence of two normalized word lists.

    Words are compared with the fuzzy ``tokens_match`` predicate, so a word
    with a single ASR slip still lines up with its verse counterpart. Skipped
    or inserted words are tolerated, but relative order must hold.

    Returns the matched words as they appear in *transcribed*.
    """
    if not transcribed or not window:
        return []

    n = len(transcribed)
    m = len(window)

    # dp[i][j] = length of LCS of transcribed[:i] and window[:j]
    dp = [[0] * (m + 1) for _ in range(n + 1)]

    for i in range(1, n + 1):
        for j in range(1, m + 1):
            if tokens_match(transcribed[i - 1], window[j - 1], threshold):
                dp[i][j] = dp[i - 1][j - 1] + 1
            else:
                dp[i][j] = max(dp[i - 1][j], dp[i][j - 1])

    # Backtrack to recover the matched words
    matched = []
    i, j = n, m
    while i > 0 and j > 0:
        if tokens_match(transcribed[i - 1], window[j - 1], threshold):
            matched.append(transcribed[i - 1])
            i -= 1
            j -= 1
        elif dp[i - 1][j] >= dp[i][j - 1]:
            i -= 1
        else:
            j -= 1

    matched.reverse()
    return matched


def sequence_match(
    transcribed: list[str],
    window: list[str],
    threshold: float = WORD_MATCH_THRESHOLD,
) -> float:
    """``|lcs| / max(len(transcribed), len(window))``, 0 when either is empty."""
    if not transcribed or not window:
        return 0.0
    return len(lcs(transcribed, window, threshold)) / max(len(transcribed), len(window))
