from mountwrap.cli.wrapper import main


raise SystemExit(main())
