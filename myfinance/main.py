import logging

from myfinance.cli import FinanceCLI
from myfinance.config import DEFAULT_SAVE_NAME, LOG_LEVEL
from myfinance.models import FinanceState
from myfinance.storage import read_snapshot, save_path, save_state

logger = logging.getLogger(__name__)


def main():
    logging.basicConfig(level=LOG_LEVEL, format="%(levelname)s %(name)s: %(message)s")

    state = read_snapshot(DEFAULT_SAVE_NAME)
    # A save that exists but could not be read is never overwritten on exit
    writable = state is not None or not save_path(DEFAULT_SAVE_NAME).exists()
    if state is None:
        state = FinanceState()

    FinanceCLI(state).cmdloop()

    if writable:
        save_state(state, DEFAULT_SAVE_NAME)
    else:
        logger.warning("'%s' could not be read at startup, not overwriting it", DEFAULT_SAVE_NAME)
        print(f"'{DEFAULT_SAVE_NAME}' was unreadable and was left as is; use 'save <name>' to keep this session")


if __name__ == "__main__":
    main()
