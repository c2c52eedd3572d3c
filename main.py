# /main.py
# Entry point for running a sweep from a checkout: python main.py --module <address>
from cowfee.cli import run

if __name__ == "__main__":
    run()
