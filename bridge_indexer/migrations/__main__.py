from .apply_schema import main

main()
