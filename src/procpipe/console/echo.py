"""
Print every command line argument separately to debug argument splitting.
"""

import sys
from typing import List, Optional, TextIO


def echo(args: List[str], stream: Optional[TextIO] = None) -> None:
    stream = stream if stream is not None else sys.stdout
    for arg in args:
        stream.write(f"[{arg}]\n")


def main(argv: Optional[List[str]] = None) -> int:
    echo(sys.argv[1:] if argv is None else argv)
    return 0


if __name__ == "__main__":
    sys.exit(main())
