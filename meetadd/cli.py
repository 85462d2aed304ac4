# meetadd/cli.py
import argparse, os, sys
from .runner import main_entry

def parse(argv=None):
    ap = argparse.ArgumentParser(prog="meetadd", description="Add a Google Meet button to Google Calendar event dialogs")
    ap.add_argument("--config", default=None, help="Path to YAML config")
    ap.add_argument("--init", action="store_true", help="Log in once and save auth state, then exit")
    ap.add_argument("--show-controls", action="store_true", help="Launch Tk control panel")
    ap.add_argument("--headless", action="store_true", help="Run the browser without a window")
    ap.add_argument("--quiet", action="store_true", help="Reduce debug output")
    return ap.parse_args(argv)

def main(argv=None):
    args = parse(argv)
    if args.quiet:
        os.environ["MEETADD_VERBOSE"] = "0"
    print(f"[INFO] cfg={args.config} init={args.init} controls={args.show_controls} headless={args.headless}")
    sys.exit(main_entry(args.config, args.init, args.show_controls, args.headless))

if __name__ == "__main__":
    main()
