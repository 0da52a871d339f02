from cratelink.compiler.cli import main

raise SystemExit(main())
