from stravaviz.cli import main

main()
