from subsync.cli import main

main()
