from stackvm.cli import main

main()
