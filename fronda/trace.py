from fronda._internal import PassOutcome

LINE = "___________________________________\n"


def pad_right(text: str, length: int) -> str:
    return text.ljust(length)[:length]


class TraceLog:
    """
    Accumulates a human readable description of every pass of a server resolution.

    The final pass is reported on its own line, since no fetch ever runs in it.
    """

    def __init__(self, uuid: str):
        self._uuid = uuid
        self._body = ""

    def add_pass(self, outcome: PassOutcome):
        header = f"Render pass {outcome.pass_index}"
        longest = max([len(key) for key in outcome.all_keys] + [len(header) - 2]) + 2
        self._body += (
            f"\n∙ {pad_right(header, longest)}  |  "
            f"{len(outcome.all_keys)} total, {len(outcome.new)} new\n"
        )
        seen: set[str] = set()
        for key in outcome.all_keys:
            self._body += f"  - {pad_right(key, longest)}|  {outcome.kind_of(key, key in seen)}\n"
            seen.add(key)

    def add_final_pass(self, pass_index: int):
        self._body += (
            f"\n∙ Render pass {pass_index}\n  - final render pass, no fetches ran\n"
        )

    def add_guard_stop(self, max_passes: int):
        self._body += f"\n! stopped after {max_passes} discovery pass(es), fetches may be missing\n"

    def render(
        self, keys: tuple[str, ...], num_passes: int, error_keys: tuple[str, ...]
    ) -> str:
        """
        Returns the full trace: a summary of the keys, each pass, and the keys that ended in error.
        """
        summary = f"{len(keys)} fetches ran in {num_passes} render passes\n"
        summary += "".join(f"  - {key}\n" for key in keys)
        errors = f"\n{len(error_keys)} fetch(es) ended in error\n"
        errors += "".join(f"  - {key}\n" for key in error_keys)
        return (
            f"{LINE}fronda server render trace [{self._uuid}]\n\n"
            + summary
            + self._body
            + errors
            + LINE
        )

    @staticmethod
    def render_failure(uuid: str, error: BaseException) -> str:
        return (
            f"{LINE}fronda server render trace [{uuid}]\n\n"
            f"Error raised during render: {error!r}\n"
            + LINE
        )
