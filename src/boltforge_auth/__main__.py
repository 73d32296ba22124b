"""
CLI entry point for the Bolt Forge auth bridge
"""

if __name__ == "__main__":
    from . import main

    main()
