"""
StepMatrix — Entry point.

Run one matrix operation from the command line.
"""

from stepmatrix.cli import main


if __name__ == "__main__":
    main()
